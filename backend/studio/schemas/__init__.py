# backend/studio/schemas/__init__.py
"""
Pydantic schemas for the studio scheduling engine.

Snapshot records (bookings, products, templates) are lenient; derived values
(enriched slots, generated sessions, reschedule outcomes) are frozen.
"""

# Availability template and overrides
from .availability import (
    AvailabilityTemplate,
    AvailableSlot,
    CapacityConfig,
    ScheduleOverride,
)

# Booking snapshot records
from .booking import (
    Booking,
    GroupClassMetadata,
    RescheduleHistoryEntry,
    TechniqueAssignment,
    TimeSlot,
    UserInfo,
)

# Pre-booking checks
from .booking_check import BookingCheck, BookingCheckRequest
from .instructor import Instructor

# Products - tagged union on ``type``
from .product import (
    ClassDetails,
    ClassPackage,
    CouplesExperience,
    GroupClass,
    GroupExperience,
    IntroductoryClass,
    OpenStudioSubscription,
    OverrideSession,
    Product,
    ProductAdapter,
    SchedulingRule,
    SessionOverride,
    SingleClass,
)

# Reschedule flow
from .reschedule import (
    ApprovalRecord,
    PersistResult,
    RescheduleOutcome,
    RescheduleRequest,
    SlotRef,
)

# Derived schedule values
from .schedule import (
    CapacityMetrics,
    DataQualityIssue,
    DateRange,
    EnrichedAvailableSlot,
    EnrichedSlot,
    GeneratedSession,
    Grid,
    ScheduleAggregation,
    ScheduleSnapshot,
)

__all__ = [
    "ApprovalRecord",
    "AvailabilityTemplate",
    "AvailableSlot",
    "Booking",
    "BookingCheck",
    "BookingCheckRequest",
    "CapacityConfig",
    "CapacityMetrics",
    "ClassDetails",
    "ClassPackage",
    "CouplesExperience",
    "DataQualityIssue",
    "DateRange",
    "EnrichedAvailableSlot",
    "EnrichedSlot",
    "GeneratedSession",
    "Grid",
    "GroupClass",
    "GroupClassMetadata",
    "GroupExperience",
    "Instructor",
    "IntroductoryClass",
    "OpenStudioSubscription",
    "OverrideSession",
    "PersistResult",
    "Product",
    "ProductAdapter",
    "RescheduleHistoryEntry",
    "RescheduleOutcome",
    "RescheduleRequest",
    "ScheduleAggregation",
    "ScheduleOverride",
    "ScheduleSnapshot",
    "SchedulingRule",
    "SessionOverride",
    "SingleClass",
    "SlotRef",
    "TechniqueAssignment",
    "TimeSlot",
    "UserInfo",
]
