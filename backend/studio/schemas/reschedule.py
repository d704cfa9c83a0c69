"""Reschedule request and outcome schemas."""

import datetime as dt
from typing import Any, Dict, Optional, Tuple

from pydantic import Field

from ..core.enums import RescheduleState
from ._strict_base import FrozenModel, StrictRequestModel
from .booking import TimeSlot


class SlotRef(StrictRequestModel):
    """Date and time of a slot named in a reschedule request."""

    date: str
    time: str
    instructor_id: Optional[int] = None

    def to_time_slot(self) -> TimeSlot:
        return TimeSlot(date=self.date, time=self.time, instructor_id=self.instructor_id)


class RescheduleRequest(StrictRequestModel):
    booking_id: str = Field(min_length=1)
    source_slot: SlotRef
    destination_slot: SlotRef
    admin_approval_granted: bool = False
    approved_by: Optional[str] = None
    approval_reason: Optional[str] = None


class ApprovalRecord(FrozenModel):
    """Audit trail of an approved lead-time exception."""

    id: str
    approved_by: str
    approved_at: dt.datetime
    hours_until_class: float
    reason: Optional[str] = None


class PersistResult(FrozenModel):
    success: bool
    error: Optional[str] = None


class RescheduleOutcome(FrozenModel):
    """
    Terminal state of one reschedule request plus the path taken to reach it.

    ``required_approval`` is set only for LeadTimeViolation, where the caller
    must re-issue the request with admin approval.
    """

    state: RescheduleState
    booking_id: str
    transitions: Tuple[RescheduleState, ...] = ()
    hours_until_class: Optional[float] = None
    required_approval: bool = False
    was_exception: bool = False
    approval: Optional[ApprovalRecord] = None
    error: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.state == RescheduleState.APPLIED

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
