"""
Booking snapshot schemas.

Booking rows are read back exactly as the clients wrote them, so these models
are deliberately forgiving: unknown technique strings become None, ids may be
ints or strings and embedded products without a ``type`` tag inherit the
booking's ``productType``.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import Field, ValidationError, field_validator, model_validator

from ..core.enums import ProductType, Technique, coerce_enum
from ._strict_base import SnapshotModel
from .product import GroupClass, Product, ProductAdapter

logger = logging.getLogger(__name__)


def _lenient_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


class UserInfo(SnapshotModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TechniqueAssignment(SnapshotModel):
    technique: Optional[Technique] = None
    participants: int = 1

    @field_validator("technique", mode="before")
    @classmethod
    def _coerce_technique(cls, value: Any) -> Optional[Technique]:
        return coerce_enum(Technique, value)  # type: ignore[return-value]


class GroupClassMetadata(SnapshotModel):
    total_participants: Optional[int] = None
    technique_assignments: List[TechniqueAssignment] = Field(default_factory=list)


class TimeSlot(SnapshotModel):
    """
    A reserved slot as stored on a booking.

    ``date`` is kept as the raw string because historical rows contain
    malformed values; callers parse it with ``parse_slot_date`` and skip the
    slot when that fails.
    """

    date: str
    time: str
    instructor_id: Optional[int] = None

    @field_validator("date", mode="before")
    @classmethod
    def _date_to_str(cls, value: Any) -> Any:
        if isinstance(value, (dt.date, dt.datetime)):
            return value.isoformat()
        if value is None:
            return ""
        return value

    @field_validator("instructor_id", mode="before")
    @classmethod
    def _coerce_instructor(cls, value: Any) -> Optional[int]:
        return _lenient_int(value)


class RescheduleHistoryEntry(SnapshotModel):
    from_slot: TimeSlot = Field(alias="from")
    to_slot: TimeSlot = Field(alias="to")
    at: dt.datetime
    was_exception: bool = False
    approved_by: Optional[str] = None


class Booking(SnapshotModel):
    id: str
    product_id: Optional[str] = None
    product_type: Optional[ProductType] = None
    product: Optional[Product] = None
    slots: List[TimeSlot] = Field(default_factory=list)
    user_info: UserInfo = Field(default_factory=UserInfo)
    is_paid: bool = False
    price: float = 0.0
    technique: Optional[Technique] = None
    group_class_metadata: Optional[GroupClassMetadata] = None
    participants: Optional[int] = None
    accepted_no_refund: bool = False
    created_at: Optional[dt.datetime] = None
    booking_code: Optional[str] = None
    reschedule_history: List[RescheduleHistoryEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _attach_product(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        product = data.get("product")
        if not isinstance(product, Mapping):
            return data

        data = dict(data)
        payload: Dict[str, Any] = dict(product)
        if not payload.get("type"):
            product_type = data.get("productType", data.get("product_type"))
            if product_type is not None:
                payload["type"] = getattr(product_type, "value", product_type)
        try:
            data["product"] = ProductAdapter.validate_python(payload)
        except ValidationError as exc:
            logger.warning(
                f"Dropping unreadable embedded product on booking {data.get('id')!r}: "
                f"{exc.error_count()} validation error(s)"
            )
            data["product"] = None
        return data

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("product_type", mode="before")
    @classmethod
    def _coerce_product_type(cls, value: Any) -> Optional[ProductType]:
        return coerce_enum(ProductType, value)  # type: ignore[return-value]

    @field_validator("technique", mode="before")
    @classmethod
    def _coerce_technique(cls, value: Any) -> Optional[Technique]:
        return coerce_enum(Technique, value)  # type: ignore[return-value]

    @field_validator("participants", mode="before")
    @classmethod
    def _coerce_participants(cls, value: Any) -> Optional[int]:
        return _lenient_int(value)

    @model_validator(mode="after")
    def _fill_product_refs(self) -> "Booking":
        if self.product is not None:
            if self.product_type is None:
                self.product_type = ProductType(self.product.type)
            if self.product_id is None:
                self.product_id = self.product.id
        return self

    @property
    def participant_count(self) -> int:
        """
        Seats this booking occupies in one slot.

        Explicit participants, then the group roster size, then the group
        product's minimum, then 1.
        """
        if self.participants is not None and self.participants > 0:
            return self.participants
        metadata = self.group_class_metadata
        if metadata is not None and metadata.total_participants:
            return max(metadata.total_participants, 1)
        if self.product_type == ProductType.GROUP_CLASS and isinstance(self.product, GroupClass):
            return self.product.min_participants
        return 1
