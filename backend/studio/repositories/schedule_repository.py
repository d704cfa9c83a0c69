# backend/studio/repositories/schedule_repository.py
"""
Schedule Repository for the studio scheduling engine.

Loads the snapshot the scheduling core works on (bookings, products,
availability template, overrides, roster, capacity config) and persists the
two booking mutations the core can request: a reschedule and a slot removal.

A reschedule re-checks destination capacity inside the same transaction that
writes it, so two requests racing for the last seat cannot both succeed.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timezone
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ConflictException,
    NotFoundException,
    RepositoryException,
    SlotCapacityConflictException,
    SlotNotFoundException,
)
from ..database.session_utils import supports_row_locks
from ..models.booking import Booking as BookingRecord
from ..models.instructor import Instructor as InstructorRecord
from ..models.product import Product as ProductRecord
from ..models.studio_setting import (
    AVAILABILITY_KEY,
    CLASS_CAPACITY_KEY,
    SCHEDULE_OVERRIDES_KEY,
    StudioSetting,
)
from ..schemas.availability import AvailabilityTemplate, CapacityConfig, ScheduleOverride
from ..schemas.booking import Booking, TimeSlot
from ..schemas.instructor import Instructor
from ..schemas.product import Product, ProductAdapter
from ..schemas.reschedule import PersistResult
from ..schemas.schedule import DateRange, ScheduleSnapshot
from ..services.capacity import capacity_config_from_settings, capacity_for
from ..services.slot_aggregator import SlotAggregator, slot_key
from ..services.technique_resolver import resolve_technique
from ..utils.time_helpers import is_valid_time, normalize_time, parse_slot_date

logger = logging.getLogger(__name__)


class ScheduleRepositoryProtocol(Protocol):
    """Collaborator contract consumed by the scheduling core."""

    def fetch_bookings(self, date_range: Optional[DateRange] = None) -> List[Booking]:
        ...

    def fetch_products(self) -> List[Product]:
        ...

    def fetch_availability_template(self) -> AvailabilityTemplate:
        ...

    def fetch_overrides(self) -> Dict[str, ScheduleOverride]:
        ...

    def fetch_instructor_roster(self) -> List[Instructor]:
        ...

    def fetch_capacity_config(self) -> CapacityConfig:
        ...

    def persist_reschedule(
        self,
        booking_id: str,
        source_slot: TimeSlot,
        destination_slot: TimeSlot,
        was_exception: bool,
        *,
        approved_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> PersistResult:
        ...

    def persist_booking_slot_removal(self, booking_id: str, slot: TimeSlot) -> None:
        ...


def _same_slot(raw: Mapping[str, Any], slot: TimeSlot) -> bool:
    """Whether a stored slot dict is the same date and time as ``slot``."""
    wanted_date = parse_slot_date(slot.date)
    if wanted_date is None or not isinstance(raw, Mapping):
        return False
    try:
        stored = TimeSlot.model_validate(raw)
    except ValidationError:
        return False
    return parse_slot_date(stored.date) == wanted_date and normalize_time(
        stored.time
    ) == normalize_time(slot.time)


def _slot_payload(slot_date: str, time: str, instructor_id: Optional[int]) -> Dict[str, Any]:
    return {"date": slot_date, "time": time, "instructorId": instructor_id}


class ScheduleRepository:
    """SQLAlchemy implementation of the schedule collaborator contract."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(f"{__name__}.ScheduleRepository")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Context manager that commits/rolls back the underlying session."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error(f"Repository transaction failed: {str(exc)}")
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

    # Settings

    def get_setting(self, key: str) -> Optional[Any]:
        record = self.db.query(StudioSetting).filter(StudioSetting.key == key).first()
        return record.value_json if record is not None else None

    def save_setting(self, key: str, value: Any) -> StudioSetting:
        record = self.db.query(StudioSetting).filter(StudioSetting.key == key).first()
        now = datetime.now(timezone.utc)
        if record is None:
            record = StudioSetting(key=key, value_json=value, updated_at=now)
            self.db.add(record)
        else:
            record.value_json = value
            record.updated_at = now
        self.db.flush()
        return record

    # Snapshot reads

    def _validate_bookings(self, records: List[BookingRecord]) -> List[Booking]:
        bookings: List[Booking] = []
        for record in records:
            try:
                bookings.append(Booking.model_validate(record.to_payload()))
            except ValidationError as exc:
                self.logger.warning(
                    f"[DATA QUALITY] Skipping unreadable booking {record.id}: "
                    f"{exc.error_count()} validation error(s)"
                )
        return bookings

    def fetch_bookings(self, date_range: Optional[DateRange] = None) -> List[Booking]:
        """
        Bookings holding at least one slot in ``date_range`` (all bookings when None).

        Bookings with an unparseable slot date are always returned so the
        aggregator can report them.
        """
        try:
            records = self.db.query(BookingRecord).order_by(BookingRecord.created_at).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings: {str(e)}")

        bookings = self._validate_bookings(records)
        if date_range is None:
            return bookings

        selected: List[Booking] = []
        for booking in bookings:
            for time_slot in booking.slots:
                slot_date = parse_slot_date(time_slot.date)
                if slot_date is None or slot_date in date_range:
                    selected.append(booking)
                    break
        return selected

    def fetch_products(self) -> List[Product]:
        try:
            records = self.db.query(ProductRecord).order_by(ProductRecord.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching products: {str(e)}")
            raise RepositoryException(f"Failed to fetch products: {str(e)}")

        products: List[Product] = []
        for record in records:
            try:
                products.append(ProductAdapter.validate_python(record.to_payload()))
            except ValidationError as exc:
                self.logger.warning(
                    f"[DATA QUALITY] Skipping unreadable product {record.id}: "
                    f"{exc.error_count()} validation error(s)"
                )
        return products

    def get_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.fetch_products() if p.id == product_id), None)

    def fetch_availability_template(self) -> AvailabilityTemplate:
        return AvailabilityTemplate.model_validate(self.get_setting(AVAILABILITY_KEY) or {})

    def fetch_overrides(self) -> Dict[str, ScheduleOverride]:
        raw = self.get_setting(SCHEDULE_OVERRIDES_KEY) or {}
        overrides: Dict[str, ScheduleOverride] = {}
        for key, value in raw.items():
            override_date = parse_slot_date(key)
            if override_date is None or not isinstance(value, Mapping):
                self.logger.warning(f"[DATA QUALITY] Ignoring schedule override {key!r}")
                continue
            overrides[override_date.isoformat()] = ScheduleOverride.model_validate(value)
        return overrides

    def fetch_instructor_roster(self) -> List[Instructor]:
        records = (
            self.db.query(InstructorRecord)
            .filter(InstructorRecord.is_active.is_(True))
            .order_by(InstructorRecord.id)
            .all()
        )
        return [
            Instructor(id=r.id, name=r.name, color_scheme=r.color_scheme or "secondary")
            for r in records
        ]

    def fetch_capacity_config(self) -> CapacityConfig:
        raw = self.get_setting(CLASS_CAPACITY_KEY)
        if not raw:
            return capacity_config_from_settings()
        return CapacityConfig.from_legacy(raw, global_default=settings.global_fallback_capacity)

    def load_snapshot(self, date_range: Optional[DateRange] = None) -> ScheduleSnapshot:
        return ScheduleSnapshot(
            bookings=self.fetch_bookings(date_range),
            products=self.fetch_products(),
            availability=self.fetch_availability_template(),
            overrides=self.fetch_overrides(),
            capacity_config=self.fetch_capacity_config(),
            instructors=self.fetch_instructor_roster(),
        )

    # Mutations

    def _acquire_write_lock(self, booking_id: str) -> None:
        """
        Take the SQLite write lock before anything is read.

        pysqlite only opens a transaction at the first write statement, so the
        booking row is touched first. A concurrent writer then waits on the
        database lock and fails with a conflict once its busy timeout expires.
        """
        if supports_row_locks(self.db):
            return
        try:
            self.db.query(BookingRecord).filter(BookingRecord.id == booking_id).update(
                {BookingRecord.reschedule_history: BookingRecord.reschedule_history},
                synchronize_session=False,
            )
        except OperationalError as exc:
            if "locked" not in str(exc.orig).lower():
                raise
            self.logger.warning(f"Write lock for booking {booking_id} not acquired: {str(exc.orig)}")
            raise ConflictException(
                "Schedule is being changed by another request, try again",
                code="CONCURRENT_MODIFICATION",
            )

    def _get_booking_for_update(self, booking_id: str) -> Optional[BookingRecord]:
        self._acquire_write_lock(booking_id)
        query = (
            self.db.query(BookingRecord)
            .filter(BookingRecord.id == booking_id)
            .populate_existing()
        )
        if supports_row_locks(self.db):
            query = query.with_for_update(of=BookingRecord)
        return query.first()

    def _lock_bookings(self) -> None:
        """Lock every booking row so concurrent reschedules serialize on capacity."""
        if supports_row_locks(self.db):
            self.db.query(BookingRecord.id).with_for_update().all()

    def _check_destination_capacity(
        self, booking: Booking, dest_date: date, destination: TimeSlot
    ) -> None:
        time_key = normalize_time(destination.time)
        technique = resolve_technique(booking).technique

        self._lock_bookings()
        day = DateRange(start=dest_date, end=dest_date)
        snapshot = self.load_snapshot(day)
        aggregation = SlotAggregator().aggregate(day, snapshot)

        wanted = slot_key(dest_date, time_key, technique)
        slot = next(
            (s for s in aggregation.slots() if slot_key(s.date, s.time, s.technique) == wanted),
            None,
        )
        if slot is not None:
            capacity = slot.capacity
            occupied = sum(b.participant_count for b in slot.bookings if b.id != booking.id)
        else:
            override = snapshot.overrides.get(dest_date.isoformat())
            capacity = capacity_for(
                technique=technique,
                override_capacity=override.capacity if override else None,
                config=snapshot.capacity_config,
            )
            occupied = 0

        if occupied + booking.participant_count > capacity:
            raise SlotCapacityConflictException(
                date=dest_date.isoformat(),
                time=time_key,
                capacity=capacity,
                participants=occupied,
            )

    def persist_reschedule(
        self,
        booking_id: str,
        source_slot: TimeSlot,
        destination_slot: TimeSlot,
        was_exception: bool,
        *,
        approved_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> PersistResult:
        """
        Move one reserved slot of a booking, atomically with a capacity re-check.

        Failures are returned, not raised, with a message fit to show the caller.
        """
        at = at or datetime.now(timezone.utc)
        dest_date = parse_slot_date(destination_slot.date)
        if dest_date is None or not is_valid_time(destination_slot.time):
            return PersistResult(
                success=False,
                error=f"Invalid destination slot {destination_slot.date} {destination_slot.time}",
            )

        try:
            with self.transaction():
                record = self._get_booking_for_update(booking_id)
                if record is None:
                    return PersistResult(success=False, error=f"Booking {booking_id} not found")

                stored_slots: List[Dict[str, Any]] = list(record.slots or [])
                index = next(
                    (i for i, raw in enumerate(stored_slots) if _same_slot(raw, source_slot)),
                    None,
                )
                if index is None:
                    return PersistResult(
                        success=False,
                        error=f"Booking {booking_id} has no slot on "
                        f"{source_slot.date} at {source_slot.time}",
                    )

                booking = Booking.model_validate(record.to_payload())
                self._check_destination_capacity(booking, dest_date, destination_slot)

                previous = stored_slots[index]
                instructor_id = destination_slot.instructor_id
                if instructor_id is None:
                    instructor_id = TimeSlot.model_validate(previous).instructor_id
                moved = _slot_payload(
                    dest_date.isoformat(), normalize_time(destination_slot.time), instructor_id
                )
                stored_slots[index] = moved
                record.slots = stored_slots
                record.reschedule_history = list(record.reschedule_history or []) + [
                    {
                        "from": previous,
                        "to": moved,
                        "at": at.isoformat(),
                        "wasException": was_exception,
                        "approvedBy": approved_by,
                    }
                ]
                self.db.flush()
        except ConflictException as exc:
            self.logger.warning(f"Reschedule of booking {booking_id} rejected: {exc.message}")
            return PersistResult(success=False, error=exc.message)
        except SQLAlchemyError as exc:
            return PersistResult(success=False, error=f"Database operation failed: {str(exc)}")

        self.logger.info(
            f"Booking {booking_id} moved to {dest_date} {normalize_time(destination_slot.time)}"
            f"{' (exception approved by ' + approved_by + ')' if approved_by else ''}"
        )
        return PersistResult(success=True)

    def persist_booking_slot_removal(self, booking_id: str, slot: TimeSlot) -> None:
        """
        Remove one reserved slot from a booking.

        Raises:
            NotFoundException: Booking does not exist
            SlotNotFoundException: Booking does not hold the slot
            RepositoryException: Database failure
        """
        try:
            with self.transaction():
                record = self._get_booking_for_update(booking_id)
                if record is None:
                    raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")

                stored_slots = list(record.slots or [])
                remaining = [raw for raw in stored_slots if not _same_slot(raw, slot)]
                if len(remaining) == len(stored_slots):
                    raise SlotNotFoundException(booking_id, slot.date, slot.time)
                record.slots = remaining
                self.db.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to remove slot from booking {booking_id}: {str(e)}")


__all__ = ["ScheduleRepository", "ScheduleRepositoryProtocol"]
