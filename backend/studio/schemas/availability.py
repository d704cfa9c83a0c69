"""
Availability template, per-date overrides and capacity configuration.

The stored JSON shapes come from the studio settings rows:

    availability: {"Monday": [{"time": "10:00", "instructorId": 1}], ...}
    scheduleOverrides: {"2025-03-04": {"slots": null}, ...}
    classCapacity: {"potters_wheel": 8, "molding": 22, "introductory_class": 8}
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import Field, RootModel, field_validator

from ..core.enums import Technique, coerce_enum
from ._strict_base import SnapshotModel
from .product import DAY_NAMES, day_of_week

logger = logging.getLogger(__name__)


class AvailableSlot(SnapshotModel):
    """A bookable (time, instructor) pair, optionally pinned to one technique."""

    time: str
    instructor_id: int
    technique: Optional[Technique] = None

    @field_validator("technique", mode="before")
    @classmethod
    def _coerce_technique(cls, value: Any) -> Optional[Technique]:
        return coerce_enum(Technique, value)  # type: ignore[return-value]


class AvailabilityTemplate(RootModel[Dict[str, List[AvailableSlot]]]):
    """Weekday name (``Sunday``..``Saturday``) to ordered slot list."""

    root: Dict[str, List[AvailableSlot]] = Field(default_factory=dict)

    @field_validator("root", mode="before")
    @classmethod
    def _normalize_day_names(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        normalized: Dict[str, Any] = {}
        for key, slots in value.items():
            name = str(key).strip().capitalize()
            if name not in DAY_NAMES:
                logger.warning(f"Ignoring unknown weekday {key!r} in availability template")
                continue
            normalized[name] = slots or []
        return normalized

    def for_date(self, value: dt.date) -> List[AvailableSlot]:
        return list(self.root.get(DAY_NAMES[day_of_week(value)], []))


class ScheduleOverride(SnapshotModel):
    """
    Whole-day exception to the weekly template.

    ``slots`` explicitly null cancels the day and a list replaces the template
    slots. When the key is omitted the template slots stand and only
    ``capacity`` applies.
    """

    slots: Optional[List[AvailableSlot]] = None
    capacity: Optional[int] = None

    @property
    def cancels_day(self) -> bool:
        return "slots" in self.model_fields_set and self.slots is None

    @property
    def replaces_slots(self) -> bool:
        return self.slots is not None


class CapacityConfig(SnapshotModel):
    """Technique defaults plus the fallback for slots with no clear technique."""

    defaults: Dict[Technique, int] = Field(default_factory=dict)
    global_default: int = Field(default=1, ge=0)

    @field_validator("defaults", mode="before")
    @classmethod
    def _drop_unknown_techniques(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        cleaned: Dict[Technique, int] = {}
        for key, capacity in value.items():
            technique = coerce_enum(Technique, key)
            if technique is None:
                continue
            cleaned[technique] = capacity  # type: ignore[index]
        return cleaned

    def default_for(self, technique: Optional[Technique]) -> Optional[int]:
        if technique is None:
            return None
        if technique in self.defaults:
            return self.defaults[technique]
        # Legacy configs only know "molding" for the hand-modeling family
        if technique in (Technique.HAND_MODELING, Technique.PAINTING):
            return self.defaults.get(Technique.MOLDING)
        if technique is Technique.MOLDING:
            return self.defaults.get(Technique.HAND_MODELING)
        return None

    @classmethod
    def from_legacy(
        cls, raw: Optional[Mapping[str, Any]], global_default: int = 1
    ) -> "CapacityConfig":
        """
        Build from the stored ``classCapacity`` setting.

        The legacy shape is ``{potters_wheel, molding, introductory_class}``;
        ``introductory_class`` is not a technique and is ignored here because
        introductory products declare capacity on their own scheduling rules.
        """
        defaults: Dict[Technique, int] = {}
        for key, capacity in (raw or {}).items():
            technique = coerce_enum(Technique, key)
            if technique is None or not isinstance(capacity, int) or capacity < 0:
                continue
            defaults[technique] = capacity  # type: ignore[index]
        if Technique.MOLDING in defaults:
            defaults.setdefault(Technique.HAND_MODELING, defaults[Technique.MOLDING])
            defaults.setdefault(Technique.PAINTING, defaults[Technique.MOLDING])
        return cls(defaults=defaults, global_default=global_default)
