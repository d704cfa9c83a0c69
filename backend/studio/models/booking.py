"""Booking table."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Booking(Base):
    """
    A purchase plus its reserved slots.

    ``slots`` is a JSON list of ``{"date", "time", "instructorId"}`` objects
    written by the clients; ``product_snapshot`` keeps the product as it was
    when purchased.
    """

    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True, default=generate_ulid)
    product_id = Column(
        String(64),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    product_type = Column(String(40), nullable=True)
    product_snapshot = Column(JSON, nullable=True)
    slots = Column(JSON, nullable=False, default=list)
    user_info = Column(JSON, nullable=False, default=dict)
    is_paid = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    price = Column(Numeric(10, 2), nullable=False, default=0)
    technique = Column(String(40), nullable=True)
    group_class_metadata = Column(JSON, nullable=True)
    participants = Column(Integer, nullable=True)
    accepted_no_refund = Column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )
    booking_code = Column(String(32), nullable=True, unique=True)
    reschedule_history = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    product = relationship("Product")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productType": self.product_type,
            "product": self.product_snapshot or (self.product.to_payload() if self.product else None),
            "slots": list(self.slots or []),
            "userInfo": dict(self.user_info or {}),
            "isPaid": bool(self.is_paid),
            "price": float(self.price or 0),
            "technique": self.technique,
            "groupClassMetadata": self.group_class_metadata,
            "participants": self.participants,
            "acceptedNoRefund": bool(self.accepted_no_refund),
            "bookingCode": self.booking_code,
            "rescheduleHistory": list(self.reschedule_history or []),
            "createdAt": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<Booking id={self.id} product={self.product_id} paid={self.is_paid}>"
