"""
Derived schedule values.

Everything here is recomputed per call from a snapshot and never persisted,
so the models are frozen.
"""

import datetime as dt
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import Field, computed_field, model_validator

from ..core.enums import DataQualityIssueKind, Technique
from ._strict_base import FrozenModel, SnapshotModel
from .availability import AvailabilityTemplate, CapacityConfig, ScheduleOverride
from .booking import Booking
from .instructor import Instructor
from .product import Product


class DateRange(FrozenModel):
    """Inclusive calendar date range."""

    start: dt.date
    end: dt.date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("end must be on or after start")
        return self

    def __contains__(self, value: object) -> bool:
        return isinstance(value, dt.date) and self.start <= value <= self.end

    def dates(self) -> Iterator[dt.date]:
        current = self.start
        while current <= self.end:
            yield current
            current += dt.timedelta(days=1)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class ScheduleSnapshot(SnapshotModel):
    """Fully materialized inputs for one aggregation pass."""

    bookings: List[Booking] = Field(default_factory=list)
    products: List[Product] = Field(default_factory=list)
    availability: AvailabilityTemplate = Field(default_factory=AvailabilityTemplate)
    overrides: Dict[str, ScheduleOverride] = Field(default_factory=dict)
    capacity_config: CapacityConfig = Field(default_factory=CapacityConfig)
    instructors: List[Instructor] = Field(default_factory=list)


class EnrichedSlot(FrozenModel):
    date: dt.date
    time: str
    technique: Technique
    product: Optional[Product] = None
    product_id: Optional[str] = None
    instructor_id: int
    capacity: int = Field(ge=0)
    bookings: Tuple[Booking, ...] = ()
    is_override_day: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def participants(self) -> int:
        return sum(booking.participant_count for booking in self.bookings)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def paid_bookings_count(self) -> int:
        return sum(1 for booking in self.bookings if booking.is_paid)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining_capacity(self) -> int:
        return max(self.capacity - self.participants, 0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_full(self) -> bool:
        return self.participants >= self.capacity


class GeneratedSession(FrozenModel):
    """Concrete dated session expanded from a product's scheduling rules."""

    product_id: str
    date: dt.date
    time: str
    instructor_id: int
    capacity: int = Field(ge=0)
    paid_bookings_count: int = 0
    total_bookings_count: int = 0
    is_override: bool = False
    technique: Optional[Technique] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_full(self) -> bool:
        return self.paid_bookings_count >= self.capacity


class EnrichedAvailableSlot(FrozenModel):
    """Template slot for one date with its current booking counts."""

    date: dt.date
    time: str
    instructor_id: int
    technique: Optional[Technique] = None
    paid_bookings_count: int = 0
    total_bookings_count: int = 0
    max_capacity: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_full(self) -> bool:
        return self.paid_bookings_count >= self.max_capacity


class DataQualityIssue(FrozenModel):
    kind: DataQualityIssueKind
    detail: str
    booking_id: Optional[str] = None
    date: Optional[str] = None


Grid = Dict[int, Dict[str, List[EnrichedSlot]]]


class ScheduleAggregation(FrozenModel):
    """Aggregated grid keyed by instructor id then ISO date, plus repairs made."""

    grid: Grid = Field(default_factory=dict)
    issues: Tuple[DataQualityIssue, ...] = ()

    def slots(self) -> Iterator[EnrichedSlot]:
        for by_date in self.grid.values():
            for day_slots in by_date.values():
                yield from day_slots


class CapacityMetrics(FrozenModel):
    start: dt.date
    days: int
    total_capacity: int = 0
    booked_participants: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def utilization(self) -> float:
        if self.total_capacity <= 0:
            return 0.0
        return round(self.booked_participants / self.total_capacity, 4)
