"""
Reschedule policy evaluation.

Governs the single operation "move booking B's slot S1 to slot S2":

    Requested -> LeadTimeOk        -> Approved -> Applied | Rejected
              -> LeadTimeViolation -> (halt, approval required)
                                   -> Approved -> Applied | Rejected   (admin exception)

Destination capacity is not checked here; the persistence collaborator
re-checks it atomically when writing the move.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Iterable, List, Optional, Protocol

import pytz

from ..core.config import settings
from ..core.enums import RescheduleState
from ..core.ulid_helper import generate_ulid
from ..schemas.booking import TimeSlot
from ..schemas.reschedule import (
    ApprovalRecord,
    PersistResult,
    RescheduleOutcome,
    RescheduleRequest,
)
from ..utils.time_helpers import is_valid_time, parse_slot_date, slot_datetime

logger = logging.getLogger(__name__)

DEFAULT_APPROVER = "admin"


class ReschedulePersistence(Protocol):
    def persist_reschedule(
        self,
        booking_id: str,
        source_slot: TimeSlot,
        destination_slot: TimeSlot,
        was_exception: bool,
        *,
        approved_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> PersistResult:
        ...


def _localize(value: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Aware datetime in the studio timezone. Naive values are studio-local."""
    if value.tzinfo is None:
        return tz.localize(value)
    return value.astimezone(tz)


def hours_until_slot(
    slot: TimeSlot, now: datetime, tz: Optional[pytz.BaseTzInfo] = None
) -> Optional[float]:
    """Hours from ``now`` to the slot's start, or None when the slot cannot be parsed."""
    tz = tz or settings.tz
    slot_date = parse_slot_date(slot.date)
    if slot_date is None or not is_valid_time(slot.time):
        return None
    start = tz.localize(slot_datetime(slot_date, slot.time))
    return (start - _localize(now, tz)).total_seconds() / 3600


def slots_require_no_refund(
    slots: Iterable[TimeSlot],
    now: datetime,
    horizon_hours: Optional[int] = None,
    tz: Optional[pytz.BaseTzInfo] = None,
) -> bool:
    """
    Whether any slot starts inside the no-refund window.

    Bookings for such slots must be accepted with ``acceptedNoRefund``.
    """
    horizon = settings.no_refund_window_hours if horizon_hours is None else horizon_hours
    for slot in slots:
        hours = hours_until_slot(slot, now, tz)
        if hours is not None and hours < horizon:
            return True
    return False


class ReschedulePolicyEngine:
    """
    Applies the lead-time rule to reschedule requests.

    Args:
        persistence: Booking mutation collaborator
        lead_time_hours: Minimum notice for a reschedule without admin approval
        timezone: Studio timezone name used for slot start times
    """

    def __init__(
        self,
        persistence: ReschedulePersistence,
        *,
        lead_time_hours: Optional[int] = None,
        timezone: Optional[str] = None,
    ):
        self.persistence = persistence
        self.lead_time_hours = (
            settings.reschedule_lead_time_hours if lead_time_hours is None else lead_time_hours
        )
        self.tz = pytz.timezone(timezone) if timezone else settings.tz

    def request(self, request: RescheduleRequest, now: datetime) -> RescheduleOutcome:
        transitions: List[RescheduleState] = [RescheduleState.REQUESTED]
        source = request.source_slot.to_time_slot()
        destination = request.destination_slot.to_time_slot()

        hours = hours_until_slot(source, now, self.tz)
        if hours is None:
            transitions.append(RescheduleState.REJECTED)
            return RescheduleOutcome(
                state=RescheduleState.REJECTED,
                booking_id=request.booking_id,
                transitions=tuple(transitions),
                error=f"Source slot {source.date} {source.time} is not a valid date and time",
            )
        within_policy = hours >= self.lead_time_hours
        hours = round(hours, 2)

        approval: Optional[ApprovalRecord] = None
        if within_policy:
            transitions.append(RescheduleState.LEAD_TIME_OK)
        else:
            transitions.append(RescheduleState.LEAD_TIME_VIOLATION)
            if not request.admin_approval_granted:
                return RescheduleOutcome(
                    state=RescheduleState.LEAD_TIME_VIOLATION,
                    booking_id=request.booking_id,
                    transitions=tuple(transitions),
                    hours_until_class=hours,
                    required_approval=True,
                )
            approval = ApprovalRecord(
                id=generate_ulid(),
                approved_by=request.approved_by or DEFAULT_APPROVER,
                approved_at=_localize(now, self.tz),
                hours_until_class=hours,
                reason=request.approval_reason,
            )
            logger.info(
                f"Reschedule exception for booking {request.booking_id} approved by "
                f"{approval.approved_by} ({hours}h before class)"
            )

        transitions.append(RescheduleState.APPROVED)
        was_exception = approval is not None
        try:
            result = self.persistence.persist_reschedule(
                request.booking_id,
                source,
                destination,
                was_exception,
                approved_by=approval.approved_by if approval else None,
                at=_localize(now, self.tz),
            )
        except Exception as exc:
            logger.error(f"Persisting reschedule of booking {request.booking_id} failed: {exc}")
            result = PersistResult(success=False, error=str(exc))

        if not result.success:
            transitions.append(RescheduleState.REJECTED)
            return RescheduleOutcome(
                state=RescheduleState.REJECTED,
                booking_id=request.booking_id,
                transitions=tuple(transitions),
                hours_until_class=hours,
                was_exception=was_exception,
                approval=approval,
                error=result.error or "Reschedule could not be saved",
            )

        transitions.append(RescheduleState.APPLIED)
        return RescheduleOutcome(
            state=RescheduleState.APPLIED,
            booking_id=request.booking_id,
            transitions=tuple(transitions),
            hours_until_class=hours,
            was_exception=was_exception,
            approval=approval,
        )
