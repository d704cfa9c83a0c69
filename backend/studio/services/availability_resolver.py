"""
Availability resolution for a single calendar date.

A ScheduleOverride for a date is authoritative: a null slot list cancels the
day and an explicit list replaces the weekly template outright. Template and
override slots are never merged.
"""

import datetime as dt
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..core.enums import Technique
from ..schemas.availability import (
    AvailabilityTemplate,
    AvailableSlot,
    CapacityConfig,
    ScheduleOverride,
)
from ..schemas.booking import Booking
from ..schemas.schedule import EnrichedAvailableSlot
from ..utils.time_helpers import normalize_time, parse_slot_date
from .capacity import capacity_for
from .technique_resolver import DEFAULT_TECHNIQUE, resolve_technique, technique_bucket

logger = logging.getLogger(__name__)


def slot_technique(slot: AvailableSlot) -> Technique:
    """Technique a template slot is sold as. Untagged slots are wheel classes."""
    return slot.technique or DEFAULT_TECHNIQUE


class AvailabilityResolver:
    """Resolves the bookable (time, instructor) list for a date."""

    def __init__(
        self,
        template: AvailabilityTemplate,
        overrides: Optional[Mapping[str, ScheduleOverride]] = None,
    ):
        self.template = template
        self.overrides: Dict[str, ScheduleOverride] = dict(overrides or {})

    def override_for(self, date: dt.date) -> Optional[ScheduleOverride]:
        return self.overrides.get(date.isoformat())

    def is_override_day(self, date: dt.date) -> bool:
        return date.isoformat() in self.overrides

    def capacity_override_for(self, date: dt.date) -> Optional[int]:
        override = self.override_for(date)
        return override.capacity if override is not None else None

    def resolve(self, date: dt.date) -> List[AvailableSlot]:
        """
        Effective slots for a date.

        Returns copies so callers cannot mutate the template or overrides.
        """
        override = self.override_for(date)
        if override is not None:
            if override.cancels_day:
                return []
            if override.replaces_slots:
                return [slot.model_copy() for slot in override.slots or []]
        return [slot.model_copy() for slot in self.template.for_date(date)]

    def available_times_for_date(
        self,
        date: dt.date,
        bookings: Iterable[Booking],
        capacity_config: CapacityConfig,
        technique: Optional[Technique] = None,
    ) -> List[EnrichedAvailableSlot]:
        """
        Resolved slots for a date with their booking counts and capacity.

        When ``technique`` is given only slots of that technique's bucket are
        returned. A booking counts against a slot when it holds the same date
        and time and resolves to the same technique bucket.
        """
        slots = self.resolve(date)
        if technique is not None:
            wanted = technique_bucket(technique)
            slots = [slot for slot in slots if technique_bucket(slot_technique(slot)) == wanted]
        if not slots:
            return []

        # Bucket -> normalized time -> bookings
        booked: Dict[Technique, Dict[str, List[Booking]]] = {}
        for booking in bookings:
            bucket = technique_bucket(resolve_technique(booking).technique)
            seen_times = set()
            for time_slot in booking.slots:
                if parse_slot_date(time_slot.date) != date:
                    continue
                time_key = normalize_time(time_slot.time)
                if time_key in seen_times:
                    continue
                seen_times.add(time_key)
                booked.setdefault(bucket, {}).setdefault(time_key, []).append(booking)

        override_capacity = self.capacity_override_for(date)
        enriched: List[EnrichedAvailableSlot] = []
        for slot in slots:
            slot_tech = slot_technique(slot)
            holders = booked.get(technique_bucket(slot_tech), {}).get(normalize_time(slot.time), [])
            enriched.append(
                EnrichedAvailableSlot(
                    date=date,
                    time=normalize_time(slot.time),
                    instructor_id=slot.instructor_id,
                    technique=slot_tech,
                    paid_bookings_count=sum(1 for b in holders if b.is_paid),
                    total_bookings_count=len(holders),
                    max_capacity=capacity_for(
                        technique=slot_tech,
                        override_capacity=override_capacity,
                        config=capacity_config,
                    ),
                )
            )
        return enriched

    def check_monthly_availability(
        self,
        start_date: dt.date,
        slot: AvailableSlot,
        bookings: Iterable[Booking],
        capacity_config: CapacityConfig,
        technique: Technique,
        weeks: int = 4,
    ) -> bool:
        """
        Whether the same time and instructor is open on each of the next weekly occurrences.

        Used when selling monthly packages that reserve one weekly slot.
        """
        bookings = list(bookings)
        wanted_time = normalize_time(slot.time)
        for week in range(weeks):
            check_date = start_date + dt.timedelta(days=7 * week)
            day_slots = self.available_times_for_date(
                check_date, bookings, capacity_config, technique
            )
            match = next(
                (
                    candidate
                    for candidate in day_slots
                    if candidate.time == wanted_time
                    and candidate.instructor_id == slot.instructor_id
                ),
                None,
            )
            if match is None or match.is_full:
                logger.debug(
                    f"Monthly availability fails on {check_date} at {wanted_time} "
                    f"for instructor {slot.instructor_id}"
                )
                return False
        return True
