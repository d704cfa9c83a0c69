"""
Slot aggregation: bookings plus candidate availability into one grid.

The grid is a pure function of the snapshot passed in. Slots are keyed by
``date|normalized time|technique bucket``; candidate slots from the weekly
template, date overrides and recurring sessions are merged in so open capacity
shows up alongside occupied slots.

Upstream data is known to contain duplicate slot rows and references to
instructors removed from the roster. Both are repaired here and every repair
is reported as a DataQualityIssue so the write path can be fixed at the source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
import logging
from typing import Callable, Dict, List, Optional, Set

from ..core.enums import DataQualityIssueKind, ProductType, Technique
from ..schemas.availability import CapacityConfig
from ..schemas.booking import Booking
from ..schemas.product import IntroductoryClass, Product
from ..schemas.schedule import (
    CapacityMetrics,
    DataQualityIssue,
    DateRange,
    EnrichedSlot,
    Grid,
    ScheduleAggregation,
    ScheduleSnapshot,
)
from ..utils.time_helpers import is_valid_time, normalize_time, parse_slot_date, time_to_minutes
from .availability_resolver import AvailabilityResolver, slot_technique
from .capacity import capacity_config_from_settings, capacity_for
from .recurring_sessions import generate_recurring_sessions
from .technique_resolver import DEFAULT_TECHNIQUE, resolve_technique, technique_bucket

logger = logging.getLogger(__name__)

# Grid bucket used when the instructor roster is empty
UNASSIGNED_INSTRUCTOR_ID = 0


def slot_key(date: dt.date, time: str, technique: Technique) -> str:
    return f"{date.isoformat()}|{time}|{technique_bucket(technique).value}"


@dataclass
class _SlotBuilder:
    """Mutable accumulator for one slot during a single aggregation pass."""

    date: dt.date
    time: str
    technique: Technique
    instructor_id: Optional[int]
    capacity: int
    product: Optional[Product] = None
    product_id: Optional[str] = None
    is_override_day: bool = False
    bookings: List[Booking] = field(default_factory=list)
    booking_ids: Set[str] = field(default_factory=set)

    def add(self, booking: Booking) -> bool:
        if booking.id in self.booking_ids:
            return False
        self.booking_ids.add(booking.id)
        self.bookings.append(booking)
        return True

    def build(self, instructor_id: int) -> EnrichedSlot:
        return EnrichedSlot(
            date=self.date,
            time=self.time,
            technique=technique_bucket(self.technique),
            product=self.product,
            product_id=self.product_id,
            instructor_id=instructor_id,
            capacity=self.capacity,
            bookings=tuple(self.bookings),
            is_override_day=self.is_override_day,
        )


class SlotAggregator:
    """
    Builds the per-instructor, per-date slot grid.

    Args:
        capacity_config: Fallback technique defaults used when the snapshot
            carries none
    """

    def __init__(self, capacity_config: Optional[CapacityConfig] = None):
        self.capacity_config = capacity_config or capacity_config_from_settings()

    def _config_for(self, snapshot: ScheduleSnapshot) -> CapacityConfig:
        if snapshot.capacity_config.defaults:
            return snapshot.capacity_config
        return self.capacity_config

    def aggregate(self, date_range: DateRange, snapshot: ScheduleSnapshot) -> ScheduleAggregation:
        config = self._config_for(snapshot)
        resolver = AvailabilityResolver(snapshot.availability, snapshot.overrides)
        products_by_id: Dict[str, Product] = {p.id: p for p in snapshot.products}
        roster_ids = {instructor.id for instructor in snapshot.instructors}
        issues: List[DataQualityIssue] = []

        def report(
            kind: DataQualityIssueKind,
            detail: str,
            booking_id: Optional[str] = None,
            date: Optional[str] = None,
        ) -> None:
            logger.warning(f"[DATA QUALITY] {kind.value}: {detail}")
            issues.append(
                DataQualityIssue(kind=kind, detail=detail, booking_id=booking_id, date=date)
            )

        candidates = self._candidate_slots(date_range, snapshot, resolver, config, report)
        slots: Dict[str, _SlotBuilder] = {}

        # Booking pass
        for booking in snapshot.bookings:
            resolution = resolve_technique(booking)
            product = booking.product or products_by_id.get(booking.product_id or "")
            for time_slot in booking.slots:
                slot_date = parse_slot_date(time_slot.date)
                if slot_date is None:
                    report(
                        DataQualityIssueKind.MALFORMED_DATE,
                        f"booking {booking.id} has slot date {time_slot.date!r}",
                        booking_id=booking.id,
                        date=time_slot.date,
                    )
                    continue
                if slot_date not in date_range:
                    continue
                if not is_valid_time(time_slot.time):
                    report(
                        DataQualityIssueKind.UNPARSEABLE_TIME,
                        f"booking {booking.id} has slot time {time_slot.time!r}",
                        booking_id=booking.id,
                        date=slot_date.isoformat(),
                    )
                    continue

                time_key = normalize_time(time_slot.time)
                key = slot_key(slot_date, time_key, resolution.technique)
                builder = slots.get(key)
                if builder is None:
                    candidate = candidates.get(key)
                    if candidate is not None:
                        builder = candidate
                        if time_slot.instructor_id in roster_ids:
                            builder.instructor_id = time_slot.instructor_id
                        if builder.product is None and product is not None:
                            builder.product = product
                            builder.product_id = product.id
                    else:
                        # Ad-hoc slot; a defaulted technique gets the global fallback capacity
                        builder = _SlotBuilder(
                            date=slot_date,
                            time=time_key,
                            technique=resolution.technique,
                            instructor_id=time_slot.instructor_id,
                            capacity=capacity_for(
                                technique=None if resolution.is_default else resolution.technique,
                                override_capacity=resolver.capacity_override_for(slot_date),
                                config=config,
                            ),
                            product=product,
                            product_id=product.id if product else booking.product_id,
                            is_override_day=resolver.is_override_day(slot_date),
                        )
                    slots[key] = builder

                if not builder.add(booking):
                    report(
                        DataQualityIssueKind.DUPLICATE_SLOT_ROW,
                        f"booking {booking.id} holds {slot_date} {time_key} more than once",
                        booking_id=booking.id,
                        date=slot_date.isoformat(),
                    )

        # Availability pass
        for key, candidate in candidates.items():
            slots.setdefault(key, candidate)

        grid = self._bucket(slots.values(), snapshot, report)
        return ScheduleAggregation(grid=grid, issues=tuple(issues))

    def _candidate_slots(
        self,
        date_range: DateRange,
        snapshot: ScheduleSnapshot,
        resolver: AvailabilityResolver,
        config: CapacityConfig,
        report: Callable[..., None],
    ) -> Dict[str, _SlotBuilder]:
        """
        Empty slots from the template, date overrides and recurring sessions.

        Slots are keyed by date, time and technique, so a second instructor
        offering the same key is folded into the first one and reported.
        """
        candidates: Dict[str, _SlotBuilder] = {}

        for current in date_range.dates():
            override_capacity = resolver.capacity_override_for(current)
            is_override_day = resolver.is_override_day(current)
            for slot in resolver.resolve(current):
                if not is_valid_time(slot.time):
                    logger.warning(
                        f"[DATA QUALITY] availability slot on {current} has time {slot.time!r}"
                    )
                    continue
                technique = slot_technique(slot)
                time_key = normalize_time(slot.time)
                key = slot_key(current, time_key, technique)
                if key in candidates:
                    kept = candidates[key].instructor_id
                    if kept != slot.instructor_id:
                        report(
                            DataQualityIssueKind.SHADOWED_SLOT,
                            f"{current} {time_key} {technique.value} of instructor "
                            f"{slot.instructor_id} folded into instructor {kept}",
                            date=current.isoformat(),
                        )
                    continue
                product = self._package_product(snapshot.products, technique)
                candidates[key] = _SlotBuilder(
                    date=current,
                    time=time_key,
                    technique=technique,
                    instructor_id=slot.instructor_id,
                    capacity=capacity_for(
                        technique=technique,
                        override_capacity=override_capacity,
                        config=config,
                    ),
                    product=product,
                    product_id=product.id if product else None,
                    is_override_day=is_override_day,
                )

        for product in snapshot.products:
            if not isinstance(product, IntroductoryClass) or not product.is_active:
                continue
            sessions = generate_recurring_sessions(
                product,
                snapshot.bookings,
                start_date=date_range.start,
                horizon_days=date_range.days,
                capacity_config=config,
            )
            for session in sessions:
                technique = session.technique or DEFAULT_TECHNIQUE
                key = slot_key(session.date, session.time, technique)
                if key in candidates:
                    continue
                candidates[key] = _SlotBuilder(
                    date=session.date,
                    time=session.time,
                    technique=technique,
                    instructor_id=session.instructor_id,
                    capacity=session.capacity,
                    product=product,
                    product_id=product.id,
                    is_override_day=session.is_override or resolver.is_override_day(session.date),
                )
        return candidates

    @staticmethod
    def _package_product(products: List[Product], technique: Technique) -> Optional[Product]:
        """The studio's class package a generic template slot is sold as."""
        packages = [
            p for p in products if p.type == ProductType.CLASS_PACKAGE.value and p.is_active
        ]
        wanted = technique_bucket(technique)
        for package in packages:
            if package.technique is not None and technique_bucket(package.technique) == wanted:
                return package
        return packages[0] if packages else None

    @staticmethod
    def _bucket(builders, snapshot: ScheduleSnapshot, report) -> Grid:
        roster_ids = [instructor.id for instructor in snapshot.instructors]
        known = set(roster_ids)
        if not roster_ids:
            report(
                DataQualityIssueKind.EMPTY_ROSTER,
                f"instructor roster is empty; slots grouped under {UNASSIGNED_INSTRUCTOR_ID}",
            )

        grid: Grid = {}
        for builder in builders:
            if not roster_ids:
                instructor_id = UNASSIGNED_INSTRUCTOR_ID
            elif builder.instructor_id in known:
                instructor_id = builder.instructor_id
            else:
                instructor_id = roster_ids[0]
                report(
                    DataQualityIssueKind.ORPHANED_INSTRUCTOR,
                    f"slot {builder.date} {builder.time} references instructor "
                    f"{builder.instructor_id}; reassigned to {instructor_id}",
                    booking_id=builder.bookings[0].id if builder.bookings else None,
                    date=builder.date.isoformat(),
                )
            by_date = grid.setdefault(instructor_id, {})
            by_date.setdefault(builder.date.isoformat(), []).append(builder.build(instructor_id))

        for by_date in grid.values():
            for day_slots in by_date.values():
                day_slots.sort(key=lambda s: (time_to_minutes(s.time), s.technique.value))
        return grid

    def capacity_metrics(
        self, start_date: dt.date, days: int, snapshot: ScheduleSnapshot
    ) -> CapacityMetrics:
        """Total slot capacity against booked participants over a horizon."""
        if days <= 0:
            return CapacityMetrics(start=start_date, days=0)
        date_range = DateRange(start=start_date, end=start_date + dt.timedelta(days=days - 1))
        aggregation = self.aggregate(date_range, snapshot)
        total_capacity = 0
        booked = 0
        for slot in aggregation.slots():
            total_capacity += slot.capacity
            booked += slot.participants
        return CapacityMetrics(
            start=start_date,
            days=days,
            total_capacity=total_capacity,
            booked_participants=booked,
        )


def aggregate_schedule(
    date_range: DateRange,
    snapshot: ScheduleSnapshot,
    capacity_config: Optional[CapacityConfig] = None,
) -> Grid:
    """Aggregated grid for a date range: instructor id -> ISO date -> slots by time."""
    return SlotAggregator(capacity_config).aggregate(date_range, snapshot).grid
