"""
Technique resolution for bookings.

A booking's technique can live in four different places depending on which
client created it. Slot grouping depends on the answer, so resolution is
total: it always returns a Technique, falling back to the potter's wheel.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Tuple

from ..core.enums import Technique, TechniqueSource
from ..schemas.booking import Booking

logger = logging.getLogger(__name__)

DEFAULT_TECHNIQUE = Technique.POTTERS_WHEEL

# Checked in order; the first keyword contained in the lowercased name wins.
_NAME_KEYWORDS: Tuple[Tuple[str, Technique], ...] = (
    ("pintura", Technique.PAINTING),
    ("painting", Technique.PAINTING),
    ("modelado", Technique.HAND_MODELING),
    ("hand modeling", Technique.HAND_MODELING),
    ("hand_modeling", Technique.HAND_MODELING),
    ("torno", Technique.POTTERS_WHEEL),
    ("wheel", Technique.POTTERS_WHEEL),
)


@dataclass(frozen=True)
class TechniqueResolution:
    technique: Technique
    source: TechniqueSource

    @property
    def is_default(self) -> bool:
        return self.source == TechniqueSource.DEFAULT


def technique_bucket(technique: Technique) -> Technique:
    """Grid bucket for a technique. Legacy ``molding`` shares hand modeling's bucket."""
    if technique == Technique.MOLDING:
        return Technique.HAND_MODELING
    return technique


def technique_from_product_name(name: Optional[str]) -> Optional[Technique]:
    if not name:
        return None
    lowered = name.lower()
    for keyword, technique in _NAME_KEYWORDS:
        if keyword in lowered:
            return technique
    return None


def resolve_technique(booking: Booking) -> TechniqueResolution:
    """
    Derive the technique of a booking.

    Priority: explicit booking field, first group technique assignment,
    product detail record, product name keywords, then the default.
    """
    if booking.technique is not None:
        return TechniqueResolution(booking.technique, TechniqueSource.EXPLICIT)

    metadata = booking.group_class_metadata
    if metadata is not None:
        for assignment in metadata.technique_assignments[:1]:
            if assignment.technique is not None:
                return TechniqueResolution(assignment.technique, TechniqueSource.GROUP_METADATA)

    product = booking.product
    if product is not None:
        if product.technique is not None:
            return TechniqueResolution(product.technique, TechniqueSource.PRODUCT_DETAILS)
        from_name = technique_from_product_name(product.name)
        if from_name is not None:
            return TechniqueResolution(from_name, TechniqueSource.PRODUCT_NAME)

    logger.debug(f"Booking {booking.id} has no technique information; defaulting")
    return TechniqueResolution(DEFAULT_TECHNIQUE, TechniqueSource.DEFAULT)


def validate_booking_technique(
    product_name: Optional[str], technique: Optional[str]
) -> Tuple[bool, Optional[str]]:
    """
    Check that a technique chosen for a booking matches what its product implies.

    Missing product name or technique is accepted. Products whose name names
    no technique imply the potter's wheel.
    """
    if not product_name or not technique:
        return True, None

    expected = technique_from_product_name(product_name) or DEFAULT_TECHNIQUE
    if technique.strip().lower() != expected.value:
        return (
            False,
            f"Technique '{technique}' is incompatible with product '{product_name}'. "
            f"Expected technique: {expected.value}",
        )
    return True, None
