"""Instructor roster table."""

from sqlalchemy import Boolean, Column, Integer, String, text

from ..database import Base


class Instructor(Base):
    """Studio instructor. Referenced by id from booking slots and scheduling rules."""

    __tablename__ = "instructors"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(120), nullable=False)
    color_scheme = Column(String(32), nullable=False, default="secondary")
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))

    def __repr__(self) -> str:
        return f"<Instructor id={self.id} name={self.name}>"
