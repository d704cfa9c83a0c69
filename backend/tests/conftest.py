"""
Shared fixtures for the scheduling test suite.

Dates used throughout: 2025-03-01 is a Saturday, 2025-03-03 a Monday.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studio.database import Base

# Import models so Base.metadata is populated for create_all.
import studio.models  # noqa: F401
from studio.models import (
    Booking as BookingRecord,
    Instructor as InstructorRecord,
    Product as ProductRecord,
    StudioSetting,
)
from studio.models.studio_setting import (
    AVAILABILITY_KEY,
    CLASS_CAPACITY_KEY,
    SCHEDULE_OVERRIDES_KEY,
)
from studio.schemas import (
    AvailabilityTemplate,
    Booking,
    CapacityConfig,
    Instructor,
    ProductAdapter,
    ScheduleOverride,
    ScheduleSnapshot,
)

SlotSpec = Tuple[str, str, Optional[int]]

PACKAGE_PAYLOAD: Dict[str, Any] = {
    "id": "pkg-4",
    "type": "CLASS_PACKAGE",
    "name": "Paquete 4 clases torno",
    "classes": 4,
    "details": {"technique": "potters_wheel", "duration": "2h"},
}

PAINTING_PACKAGE_PAYLOAD: Dict[str, Any] = {
    "id": "pkg-paint",
    "type": "CLASS_PACKAGE",
    "name": "Pintura de piezas",
    "classes": 2,
    "details": {"technique": "painting"},
}

INTRO_PAYLOAD: Dict[str, Any] = {
    "id": "intro-1",
    "type": "INTRODUCTORY_CLASS",
    "name": "Clase introductoria de torno",
    "details": {"technique": "potters_wheel"},
    "schedulingRules": [
        {"id": "r-tue", "dayOfWeek": 2, "time": "19:00", "instructorId": 1, "capacity": 6},
        {"id": "r-thu", "dayOfWeek": 4, "time": "7:00 PM", "instructorId": 2, "capacity": 6},
    ],
    "overrides": [],
}

GROUP_CLASS_PAYLOAD: Dict[str, Any] = {
    "id": "group-1",
    "type": "GROUP_CLASS",
    "name": "Clase grupal de torno",
    "minParticipants": 4,
    "pricePerPerson": 30,
}

TEMPLATE_PAYLOAD: Dict[str, Any] = {
    "Monday": [{"time": "10:00", "instructorId": 1}],
    "Wednesday": [{"time": "18:00", "instructorId": 2, "technique": "molding"}],
    "Saturday": [
        {"time": "10:00", "instructorId": 1},
        {"time": "10:00", "instructorId": 2, "technique": "painting"},
    ],
}


@pytest.fixture
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def unit_db(_unit_engine) -> Session:
    """
    Session on a fresh in-memory database.

    Repository mutations commit, so every test gets its own engine instead of
    a rolled-back savepoint.
    """
    SessionLocal = sessionmaker(bind=_unit_engine, expire_on_commit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def build_booking(
    booking_id: str,
    slots: Iterable[SlotSpec],
    **fields: Any,
) -> Booking:
    payload: Dict[str, Any] = {
        "id": booking_id,
        "slots": [
            {"date": slot_date, "time": slot_time, "instructorId": instructor_id}
            for slot_date, slot_time, instructor_id in slots
        ],
    }
    payload.update(fields)
    return Booking.model_validate(payload)


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    """Factory: ``make_booking("B1", [("2025-03-03", "10:00", 1)], isPaid=True)``."""
    return build_booking


@pytest.fixture
def roster() -> List[Instructor]:
    return [Instructor(id=1, name="Ana"), Instructor(id=2, name="Luis")]


@pytest.fixture
def template() -> AvailabilityTemplate:
    return AvailabilityTemplate.model_validate(TEMPLATE_PAYLOAD)


@pytest.fixture
def capacity_config() -> CapacityConfig:
    return CapacityConfig.from_legacy({"potters_wheel": 8, "molding": 22, "introductory_class": 8})


@pytest.fixture
def package_product():
    return ProductAdapter.validate_python(PACKAGE_PAYLOAD)


@pytest.fixture
def intro_product():
    return ProductAdapter.validate_python(INTRO_PAYLOAD)


@pytest.fixture
def group_product():
    return ProductAdapter.validate_python(GROUP_CLASS_PAYLOAD)


@pytest.fixture
def make_snapshot(roster, template, capacity_config) -> Callable[..., ScheduleSnapshot]:
    """Snapshot factory defaulting to the shared roster, template and capacities."""

    def _make(
        bookings: Iterable[Booking] = (),
        products: Iterable[Any] = (),
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        **fields: Any,
    ) -> ScheduleSnapshot:
        values: Dict[str, Any] = {
            "bookings": list(bookings),
            "products": list(products),
            "availability": template,
            "overrides": {
                key: ScheduleOverride.model_validate(value)
                for key, value in (overrides or {}).items()
            },
            "capacity_config": capacity_config,
            "instructors": roster,
        }
        values.update(fields)
        return ScheduleSnapshot(**values)

    return _make


def _product_record(payload: Dict[str, Any]) -> ProductRecord:
    attributes = {
        key: value
        for key, value in payload.items()
        if key not in {"id", "type", "name", "description", "price", "isActive"}
    }
    return ProductRecord(
        id=payload["id"],
        type=payload["type"],
        name=payload.get("name", ""),
        description=payload.get("description", ""),
        price=Decimal("120.00"),
        is_active=payload.get("isActive", True),
        attributes=attributes,
    )


def _booking_record(
    booking_id: str, product_id: Optional[str], slots: Iterable[SlotSpec], **fields: Any
) -> BookingRecord:
    return BookingRecord(
        id=booking_id,
        product_id=product_id,
        slots=[
            {"date": slot_date, "time": slot_time, "instructorId": instructor_id}
            for slot_date, slot_time, instructor_id in slots
        ],
        user_info={"firstName": "Test", "lastName": booking_id, "email": f"{booking_id}@example.com"},
        price=Decimal("45.00"),
        **fields,
    )


@pytest.fixture
def add_booking_record(unit_db: Session) -> Callable[..., BookingRecord]:
    def _add(
        booking_id: str,
        slots: Iterable[SlotSpec],
        product_id: Optional[str] = "pkg-4",
        **fields: Any,
    ) -> BookingRecord:
        record = _booking_record(booking_id, product_id, slots, **fields)
        unit_db.add(record)
        unit_db.commit()
        return record

    return _add


@pytest.fixture
def seeded_db(unit_db: Session) -> Session:
    """
    Studio with two active instructors (plus one retired), four products,
    the shared weekly template, two overrides and a legacy capacity setting
    limiting wheel classes to two seats.
    """
    unit_db.add_all(
        [
            InstructorRecord(id=1, name="Ana", color_scheme="primary"),
            InstructorRecord(id=2, name="Luis"),
            InstructorRecord(id=3, name="Retired", is_active=False),
        ]
    )
    unit_db.add_all(
        [
            _product_record(PACKAGE_PAYLOAD),
            _product_record(PAINTING_PACKAGE_PAYLOAD),
            _product_record(INTRO_PAYLOAD),
            _product_record(GROUP_CLASS_PAYLOAD),
        ]
    )
    unit_db.add_all(
        [
            StudioSetting(key=AVAILABILITY_KEY, value_json=TEMPLATE_PAYLOAD),
            StudioSetting(
                key=SCHEDULE_OVERRIDES_KEY,
                value_json={
                    "2025-03-10": {"slots": None},
                    "2025-03-24T00:00:00.000Z": {"capacity": 5},
                    "not-a-date": {"slots": []},
                },
            ),
            StudioSetting(
                key=CLASS_CAPACITY_KEY,
                value_json={"potters_wheel": 2, "molding": 22, "introductory_class": 8},
            ),
        ]
    )
    unit_db.add(
        _booking_record("B1", "pkg-4", [("2025-03-03", "10:00", 1)], is_paid=True)
    )
    unit_db.add(
        _booking_record("B2", "pkg-4", [("2025-03-05", "6:00 PM", 2)], technique="molding")
    )
    unit_db.add(
        _booking_record("B-bad-date", "pkg-4", [("03/05/2025", "10:00", 1)])
    )
    unit_db.commit()
    return unit_db


@pytest.fixture
def file_db_factory(tmp_path) -> Iterator[sessionmaker]:
    """
    Session factory over a file-backed SQLite database, for tests that need
    two connections. One wheel seat per slot; bookings X and Y hold Monday
    2025-03-03 at 10:00 and 11:00.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'studio.db'}",
        connect_args={"check_same_thread": False, "timeout": 0.1},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as db:
        db.add(InstructorRecord(id=1, name="Ana", color_scheme="primary"))
        db.add(_product_record(PACKAGE_PAYLOAD))
        db.add(StudioSetting(key=CLASS_CAPACITY_KEY, value_json={"potters_wheel": 1}))
        db.add(_booking_record("X", "pkg-4", [("2025-03-03", "10:00", 1)]))
        db.add(_booking_record("Y", "pkg-4", [("2025-03-03", "11:00", 1)]))
        db.commit()
    try:
        yield factory
    finally:
        engine.dispose()
