# backend/studio/core/enums.py
"""
Core enums for the studio scheduling engine.

Values match the strings stored by the booking system so that snapshots
serialized as JSON round-trip without translation.
"""

from enum import Enum
from typing import Optional


class Technique(str, Enum):
    """
    Craft category of a class.

    MOLDING is the legacy name for hand modeling still present in older
    availability templates; it buckets and defaults with HAND_MODELING.
    """

    POTTERS_WHEEL = "potters_wheel"
    HAND_MODELING = "hand_modeling"
    PAINTING = "painting"
    MOLDING = "molding"


class ProductType(str, Enum):
    """Purchasable product kinds."""

    CLASS_PACKAGE = "CLASS_PACKAGE"
    SINGLE_CLASS = "SINGLE_CLASS"
    INTRODUCTORY_CLASS = "INTRODUCTORY_CLASS"
    GROUP_CLASS = "GROUP_CLASS"
    GROUP_EXPERIENCE = "GROUP_EXPERIENCE"
    COUPLES_EXPERIENCE = "COUPLES_EXPERIENCE"
    OPEN_STUDIO_SUBSCRIPTION = "OPEN_STUDIO_SUBSCRIPTION"


class RescheduleState(str, Enum):
    """States of the reschedule policy state machine."""

    REQUESTED = "Requested"
    LEAD_TIME_OK = "LeadTimeOk"
    LEAD_TIME_VIOLATION = "LeadTimeViolation"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    APPLIED = "Applied"


class TechniqueSource(str, Enum):
    """Which booking field a derived technique came from, highest priority first."""

    EXPLICIT = "explicit"
    GROUP_METADATA = "group_metadata"
    PRODUCT_DETAILS = "product_details"
    PRODUCT_NAME = "product_name"
    DEFAULT = "default"


class DataQualityIssueKind(str, Enum):
    """Upstream data inconsistencies repaired during aggregation."""

    UNPARSEABLE_TIME = "unparseable_time"
    MALFORMED_DATE = "malformed_date"
    DUPLICATE_SLOT_ROW = "duplicate_slot_row"
    ORPHANED_INSTRUCTOR = "orphaned_instructor"
    EMPTY_ROSTER = "empty_roster"
    SHADOWED_SLOT = "shadowed_slot"


def coerce_enum(enum_cls: type[Enum], value: object) -> Optional[Enum]:
    """Return the enum member for value, or None for unknown/dirty values."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        for candidate in (raw, raw.lower(), raw.upper()):
            try:
                return enum_cls(candidate)
            except ValueError:
                continue
    return None
