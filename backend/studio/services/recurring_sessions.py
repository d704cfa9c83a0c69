"""
Session generation for products that carry their own scheduling rules.

Introductory classes are not sold from the shared weekly template; each
product declares weekly rules (day, time, instructor, capacity) that are
expanded into dated sessions over a horizon, with per-date overrides applied.
"""

import datetime as dt
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..core.config import settings
from ..schemas.availability import CapacityConfig
from ..schemas.booking import Booking
from ..schemas.product import IntroductoryClass, SessionOverride, day_of_week
from ..schemas.schedule import GeneratedSession
from ..utils.time_helpers import normalize_time, parse_slot_date, time_to_minutes
from .capacity import capacity_for

logger = logging.getLogger(__name__)

SessionKey = Tuple[dt.date, str]


def _count_bookings(product_id: str, bookings: Iterable[Booking]) -> Dict[SessionKey, Tuple[int, int]]:
    """(paid, total) bookings per (date, normalized time) for one product."""
    holders: Dict[SessionKey, Dict[str, bool]] = {}
    for booking in bookings:
        if booking.product_id != product_id:
            continue
        for time_slot in booking.slots:
            slot_date = parse_slot_date(time_slot.date)
            if slot_date is None:
                continue
            key = (slot_date, normalize_time(time_slot.time))
            holders.setdefault(key, {})[booking.id] = booking.is_paid
    return {
        key: (sum(1 for paid in by_id.values() if paid), len(by_id))
        for key, by_id in holders.items()
    }


def generate_recurring_sessions(
    product: object,
    bookings: Iterable[Booking],
    *,
    start_date: dt.date,
    horizon_days: Optional[int] = None,
    include_full: bool = True,
    capacity_config: Optional[CapacityConfig] = None,
) -> List[GeneratedSession]:
    """
    Expand a product's scheduling rules into dated sessions.

    Args:
        product: Any product; only introductory classes generate sessions
        bookings: Booking snapshot used for the per-session counts
        start_date: First generated date (studio-local "today")
        horizon_days: Number of days to generate, defaults to the UI horizon
        include_full: When False, sessions whose paid count reached capacity are dropped
        capacity_config: Technique defaults for rules that omit capacity

    Returns:
        Sessions sorted by date then time
    """
    if not isinstance(product, IntroductoryClass):
        return []
    if not product.scheduling_rules and not product.overrides:
        return []

    horizon = horizon_days if horizon_days is not None else settings.recurring_horizon_days_ui
    config = capacity_config or CapacityConfig()
    overrides: Dict[dt.date, SessionOverride] = {o.date: o for o in product.overrides}
    counts = _count_bookings(product.id, bookings)

    sessions: List[GeneratedSession] = []
    for offset in range(max(horizon, 0)):
        current = start_date + dt.timedelta(days=offset)
        override = overrides.get(current)

        candidates: List[Tuple[str, int, int, bool]] = []
        if override is not None and override.cancels_day:
            continue
        if override is not None and override.replaces_sessions:
            for session in override.sessions or []:
                candidates.append((session.time, session.instructor_id, session.capacity, True))
        else:
            weekday = day_of_week(current)
            for rule in product.scheduling_rules:
                if rule.day_of_week == weekday:
                    candidates.append((rule.time, rule.instructor_id, rule.capacity, False))

        override_capacity = override.capacity if override is not None else None
        seen: Set[Tuple[str, int]] = set()
        for raw_time, instructor_id, rule_capacity, is_override in candidates:
            time_key = normalize_time(raw_time)
            if (time_key, instructor_id) in seen:
                continue
            seen.add((time_key, instructor_id))

            paid, total = counts.get((current, time_key), (0, 0))
            capacity = capacity_for(
                technique=product.technique,
                override_capacity=override_capacity,
                rule_capacity=rule_capacity,
                config=config,
            )
            session = GeneratedSession(
                product_id=product.id,
                date=current,
                time=time_key,
                instructor_id=instructor_id,
                capacity=capacity,
                paid_bookings_count=paid,
                total_bookings_count=total,
                is_override=is_override,
                technique=product.technique,
            )
            if not include_full and session.is_full:
                continue
            sessions.append(session)

    sessions.sort(key=lambda s: (s.date, time_to_minutes(s.time), s.instructor_id))
    return sessions
