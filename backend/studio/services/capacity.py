"""Slot capacity classification."""

from typing import Optional

from ..core.config import Settings, settings as default_settings
from ..core.enums import Technique
from ..schemas.availability import CapacityConfig


def capacity_config_from_settings(config: Optional[Settings] = None) -> CapacityConfig:
    """Capacity defaults as configured through the environment."""
    config = config or default_settings
    return CapacityConfig(
        defaults={
            Technique.POTTERS_WHEEL: config.default_capacity_potters_wheel,
            Technique.HAND_MODELING: config.default_capacity_hand_modeling,
            Technique.MOLDING: config.default_capacity_hand_modeling,
            Technique.PAINTING: config.default_capacity_painting,
        },
        global_default=config.global_fallback_capacity,
    )


def capacity_for(
    *,
    technique: Optional[Technique],
    config: CapacityConfig,
    override_capacity: Optional[int] = None,
    rule_capacity: Optional[int] = None,
) -> int:
    """
    Capacity of one slot.

    Precedence: date override, product scheduling rule, technique default,
    global default. Non-positive overrides count as unset. Never negative.
    """
    if override_capacity is not None and override_capacity > 0:
        return override_capacity
    if rule_capacity is not None:
        return max(rule_capacity, 0)
    technique_default = config.default_for(technique)
    if technique_default is not None:
        return max(technique_default, 0)
    return max(config.global_default, 0)
