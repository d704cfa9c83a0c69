"""Product catalog table."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import JSON, Boolean, Column, Numeric, String, Text, text

from ..database import Base


class Product(Base):
    """
    Purchasable product.

    Type-specific fields (``details``, ``schedulingRules``, ``overrides``,
    ``minParticipants``...) live in ``attributes`` as camelCase JSON so new
    product kinds need no migration.
    """

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    type = Column(String(40), nullable=False, index=True)
    name = Column(String(200), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    attributes = Column(JSON, nullable=False, default=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.attributes or {})
        payload.update(
            {
                "id": self.id,
                "type": self.type,
                "name": self.name,
                "description": self.description or "",
                "isActive": bool(self.is_active),
                "price": float(self.price) if self.price is not None else None,
            }
        )
        return payload

    def __repr__(self) -> str:
        return f"<Product id={self.id} type={self.type}>"
