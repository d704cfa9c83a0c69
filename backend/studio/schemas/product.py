"""
Product schemas.

Products are a tagged union keyed by ``type``. Only INTRODUCTORY_CLASS carries
its own scheduling rules; the other class products are booked against the
shared weekly availability template.
"""

import datetime as dt
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_validator

from ..core.enums import Technique, coerce_enum
from ._strict_base import SnapshotModel

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def day_of_week(value: dt.date) -> int:
    """Day index used by stored scheduling rules: 0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def _lenient_technique(value: Any) -> Optional[Technique]:
    return coerce_enum(Technique, value)  # type: ignore[return-value]


class ClassDetails(SnapshotModel):
    duration: Optional[str] = None
    duration_hours: Optional[float] = None
    technique: Optional[Technique] = None

    _coerce_technique = field_validator("technique", mode="before")(_lenient_technique)


class SchedulingRule(SnapshotModel):
    """Recurring weekly session of a self-scheduling product."""

    id: str = ""
    day_of_week: int = Field(ge=0, le=6)
    time: str
    instructor_id: int
    capacity: int = Field(ge=0)


class OverrideSession(SnapshotModel):
    time: str
    instructor_id: int
    capacity: int = Field(ge=0)


class SessionOverride(SnapshotModel):
    """
    Per-date exception to a product's scheduling rules.

    ``sessions`` explicitly null cancels the day, a list replaces the generated
    sessions, and an omitted key leaves the rules in place (only ``capacity``
    applies).
    """

    date: dt.date
    sessions: Optional[List[OverrideSession]] = None
    capacity: Optional[int] = None

    @property
    def cancels_day(self) -> bool:
        return "sessions" in self.model_fields_set and self.sessions is None

    @property
    def replaces_sessions(self) -> bool:
        return self.sessions is not None


class BaseProduct(SnapshotModel):
    id: str
    name: str = ""
    description: str = ""
    is_active: bool = True
    price: Optional[float] = None
    details: Optional[ClassDetails] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @property
    def technique(self) -> Optional[Technique]:
        return self.details.technique if self.details else None


class ClassPackage(BaseProduct):
    type: Literal["CLASS_PACKAGE"] = "CLASS_PACKAGE"
    classes: int = 1


class SingleClass(BaseProduct):
    type: Literal["SINGLE_CLASS"] = "SINGLE_CLASS"
    classes: int = 1


class IntroductoryClass(BaseProduct):
    type: Literal["INTRODUCTORY_CLASS"] = "INTRODUCTORY_CLASS"
    scheduling_rules: List[SchedulingRule] = Field(default_factory=list)
    overrides: List[SessionOverride] = Field(default_factory=list)


class GroupClass(BaseProduct):
    type: Literal["GROUP_CLASS"] = "GROUP_CLASS"
    min_participants: int = Field(default=1, ge=1)
    price_per_person: Optional[float] = None


class GroupExperience(BaseProduct):
    type: Literal["GROUP_EXPERIENCE"] = "GROUP_EXPERIENCE"


class CouplesExperience(BaseProduct):
    type: Literal["COUPLES_EXPERIENCE"] = "COUPLES_EXPERIENCE"


class OpenStudioSubscription(BaseProduct):
    type: Literal["OPEN_STUDIO_SUBSCRIPTION"] = "OPEN_STUDIO_SUBSCRIPTION"
    duration_days: Optional[int] = None


Product = Annotated[
    Union[
        ClassPackage,
        SingleClass,
        IntroductoryClass,
        GroupClass,
        GroupExperience,
        CouplesExperience,
        OpenStudioSubscription,
    ],
    Field(discriminator="type"),
]

ProductAdapter: TypeAdapter[Product] = TypeAdapter(Product)


def has_scheduling_rules(product: Any) -> bool:
    return isinstance(product, IntroductoryClass) and bool(
        product.scheduling_rules or product.overrides
    )
