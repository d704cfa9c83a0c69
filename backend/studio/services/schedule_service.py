# backend/studio/services/schedule_service.py
"""
Schedule Service for the studio scheduling engine.

Facade used by the API layer. It loads snapshots through the repository
contract and hands them to the pure scheduling core; it never reads the wall
clock, so every time-dependent call takes ``now`` from the caller.
"""

from datetime import date, datetime, timedelta
import logging
from typing import List, Optional, Union

from ..core.config import settings
from ..core.enums import Technique, coerce_enum
from ..core.exceptions import (
    NotFoundException,
    RepositoryException,
    ServiceException,
    ValidationException,
)
from ..repositories.schedule_repository import ScheduleRepositoryProtocol
from ..schemas.availability import AvailableSlot
from ..schemas.booking import TimeSlot
from ..schemas.booking_check import BookingCheck, BookingCheckRequest
from ..schemas.product import ClassPackage, Product
from ..schemas.reschedule import RescheduleOutcome, RescheduleRequest
from ..schemas.schedule import (
    CapacityMetrics,
    DateRange,
    EnrichedAvailableSlot,
    GeneratedSession,
    ScheduleAggregation,
    ScheduleSnapshot,
)
from ..utils.time_helpers import is_valid_time, parse_slot_date, to_12_hour
from .availability_resolver import AvailabilityResolver
from .base import BaseService
from .recurring_sessions import generate_recurring_sessions
from .reschedule_policy_engine import ReschedulePolicyEngine, slots_require_no_refund
from .slot_aggregator import SlotAggregator
from .technique_resolver import DEFAULT_TECHNIQUE, validate_booking_technique

logger = logging.getLogger(__name__)

MAX_GRID_DAYS = 366
MONTHLY_WEEKS = 4


def _local_date(now: Union[date, datetime]) -> date:
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            return now.astimezone(settings.tz).date()
        return now.date()
    return now


class ScheduleService(BaseService):
    """
    Scheduling operations exposed to the presentation and admin layers.

    Args:
        repository: Snapshot source and booking mutation collaborator
        aggregator: Slot aggregator, defaults to one built from settings
        engine: Reschedule policy engine, defaults to one over ``repository``
    """

    def __init__(
        self,
        repository: ScheduleRepositoryProtocol,
        aggregator: Optional[SlotAggregator] = None,
        engine: Optional[ReschedulePolicyEngine] = None,
    ):
        super().__init__()
        self.repository = repository
        self.aggregator = aggregator or SlotAggregator()
        self.engine = engine or ReschedulePolicyEngine(repository)

    def _resolver(self) -> AvailabilityResolver:
        return AvailabilityResolver(
            self.repository.fetch_availability_template(),
            self.repository.fetch_overrides(),
        )

    def _snapshot(self, date_range: Optional[DateRange] = None) -> ScheduleSnapshot:
        try:
            return ScheduleSnapshot(
                bookings=self.repository.fetch_bookings(date_range),
                products=self.repository.fetch_products(),
                availability=self.repository.fetch_availability_template(),
                overrides=self.repository.fetch_overrides(),
                capacity_config=self.repository.fetch_capacity_config(),
                instructors=self.repository.fetch_instructor_roster(),
            )
        except RepositoryException as e:
            self.logger.error(f"Failed to load schedule snapshot: {str(e)}")
            raise ServiceException(f"Could not load schedule data: {str(e)}")

    def _product(self, product_id: str) -> Product:
        product = next(
            (p for p in self.repository.fetch_products() if p.id == product_id), None
        )
        if product is None:
            raise NotFoundException(f"Product {product_id} not found", code="PRODUCT_NOT_FOUND")
        return product

    @BaseService.measure_operation("resolve_availability")
    def resolve_availability(self, target_date: date) -> List[AvailableSlot]:
        return self._resolver().resolve(target_date)

    @BaseService.measure_operation("available_times_for_date")
    def available_times_for_date(
        self, target_date: date, technique: Optional[Technique] = None
    ) -> List[EnrichedAvailableSlot]:
        return self._resolver().available_times_for_date(
            target_date,
            self.repository.fetch_bookings(DateRange(start=target_date, end=target_date)),
            self.repository.fetch_capacity_config(),
            technique,
        )

    @BaseService.measure_operation("generate_recurring_sessions")
    def generate_recurring_sessions(
        self,
        product_id: str,
        now: Union[date, datetime],
        horizon_days: Optional[int] = None,
        include_full: bool = True,
    ) -> List[GeneratedSession]:
        """
        Dated sessions of a self-scheduling product starting at the local date of ``now``.

        Raises:
            NotFoundException: Unknown product id
        """
        product = self._product(product_id)
        start = _local_date(now)
        horizon = horizon_days or settings.recurring_horizon_days_ui
        return generate_recurring_sessions(
            product,
            self.repository.fetch_bookings(),
            start_date=start,
            horizon_days=horizon,
            include_full=include_full,
            capacity_config=self.repository.fetch_capacity_config(),
        )

    @BaseService.measure_operation("aggregate_schedule")
    def aggregate_schedule(self, start: date, end: date) -> ScheduleAggregation:
        """
        Slot grid for an inclusive date range.

        Raises:
            ValidationException: Range is reversed or longer than a year
        """
        if end < start:
            raise ValidationException("End date must be on or after start date", code="INVALID_RANGE")
        date_range = DateRange(start=start, end=end)
        if date_range.days > MAX_GRID_DAYS:
            raise ValidationException(
                f"Date range cannot exceed {MAX_GRID_DAYS} days", code="RANGE_TOO_LONG"
            )

        aggregation = self.aggregator.aggregate(date_range, self._snapshot(date_range))
        if aggregation.issues:
            self.logger.warning(
                f"Schedule {start}..{end} aggregated with {len(aggregation.issues)} data quality repair(s)"
            )
        return aggregation

    @BaseService.measure_operation("capacity_metrics")
    def capacity_metrics(self, start: date, days: int) -> CapacityMetrics:
        if days < 0 or days > MAX_GRID_DAYS:
            raise ValidationException(f"days must be between 0 and {MAX_GRID_DAYS}")
        return self.aggregator.capacity_metrics(start, days, self._snapshot())

    @BaseService.measure_operation("check_booking")
    def check_booking(self, request: BookingCheckRequest, now: datetime) -> BookingCheck:
        """
        Checks on the slots a customer picked, run before the booking is created.

        Covers the product/technique match, the no-refund window and, for
        monthly packages, whether the first slot stays open every week.

        Raises:
            NotFoundException: Unknown product id
        """
        product = self._product(request.product_id)
        errors: List[str] = []

        technique_ok, technique_error = validate_booking_technique(product.name, request.technique)
        if not technique_ok and technique_error:
            errors.append(technique_error)

        slots = [slot.to_time_slot() for slot in request.slots]
        requires_no_refund = slots_require_no_refund(slots, now)
        if requires_no_refund and not request.accepted_no_refund:
            errors.append(
                f"Classes starting within {settings.no_refund_window_hours} hours "
                "are non-refundable and must be accepted as such"
            )

        monthly_available = None
        if request.monthly:
            monthly_available = self._check_monthly(product, request, errors)

        if errors:
            self.logger.info(
                f"Booking check for product {product.id} failed with {len(errors)} error(s)"
            )
        return BookingCheck(
            product_id=product.id,
            requires_no_refund=requires_no_refund,
            monthly_available=monthly_available,
            errors=tuple(errors),
        )

    def _check_monthly(
        self, product: Product, request: BookingCheckRequest, errors: List[str]
    ) -> bool:
        first = request.slots[0]
        start = parse_slot_date(first.date)
        if start is None or first.instructor_id is None or not is_valid_time(first.time):
            errors.append("Monthly bookings need a dated slot with an instructor")
            return False

        technique = (
            coerce_enum(Technique, request.technique) or product.technique or DEFAULT_TECHNIQUE
        )
        weeks = max(product.classes, 1) if isinstance(product, ClassPackage) else MONTHLY_WEEKS
        last = start + timedelta(days=7 * (weeks - 1))
        available = self._resolver().check_monthly_availability(
            start,
            AvailableSlot(time=first.time, instructor_id=first.instructor_id),
            self.repository.fetch_bookings(DateRange(start=start, end=last)),
            self.repository.fetch_capacity_config(),
            technique,  # type: ignore[arg-type]
            weeks=weeks,
        )
        if not available:
            errors.append(
                f"{to_12_hour(first.time)} with instructor {first.instructor_id} "
                f"is not open every week from {start.isoformat()}"
            )
        return available

    @BaseService.measure_operation("request_reschedule")
    def request_reschedule(self, request: RescheduleRequest, now: datetime) -> RescheduleOutcome:
        outcome = self.engine.request(request, now)
        self.logger.info(
            f"Reschedule request for booking {request.booking_id} ended in {outcome.state.value}"
        )
        return outcome

    @BaseService.measure_operation("remove_booking_slot")
    def remove_booking_slot(self, booking_id: str, slot: TimeSlot) -> None:
        """
        Remove one reserved slot from a booking.

        Raises:
            NotFoundException: Booking or slot not found
            ServiceException: Persistence failed
        """
        try:
            self.repository.persist_booking_slot_removal(booking_id, slot)
        except RepositoryException as e:
            self.logger.error(f"Failed to remove slot from booking {booking_id}: {str(e)}")
            raise ServiceException(str(e))
