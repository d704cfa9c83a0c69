"""Checks run on the slots a customer picked before a booking is created."""

from typing import List, Optional, Tuple

from pydantic import Field, computed_field

from ._strict_base import FrozenModel, StrictRequestModel
from .reschedule import SlotRef


class BookingCheckRequest(StrictRequestModel):
    """
    Slots about to be booked for one product.

    ``monthly`` asks whether the first slot's time and instructor stay open
    on every weekly occurrence the package covers.
    """

    product_id: str = Field(min_length=1)
    technique: Optional[str] = None
    slots: List[SlotRef] = Field(min_length=1)
    monthly: bool = False
    accepted_no_refund: bool = False


class BookingCheck(FrozenModel):
    product_id: str
    requires_no_refund: bool = False
    monthly_available: Optional[bool] = None
    errors: Tuple[str, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors
