from __future__ import annotations

from collections import Counter
from datetime import date

from hypothesis import given, settings as hypothesis_settings, strategies as st

from studio.core.enums import DataQualityIssueKind, Technique
from studio.schemas import (
    AvailabilityTemplate,
    Booking,
    DateRange,
    Instructor,
    ProductAdapter,
    ScheduleSnapshot,
)
from studio.services.slot_aggregator import (
    UNASSIGNED_INSTRUCTOR_ID,
    SlotAggregator,
    aggregate_schedule,
    slot_key,
)

MONDAY = date(2025, 3, 3)
TUESDAY = date(2025, 3, 4)
WEEK = DateRange(start=MONDAY, end=date(2025, 3, 9))
ONE_DAY = DateRange(start=MONDAY, end=MONDAY)


def _kinds(aggregation):
    return Counter(issue.kind for issue in aggregation.issues)


def _slots_on(aggregation, instructor_id: int, day: str):
    return aggregation.grid.get(instructor_id, {}).get(day, [])


def test_empty_template_slot_appears_with_full_capacity(make_snapshot) -> None:
    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot())

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert slot.time == "10:00"
    assert slot.technique == Technique.POTTERS_WHEEL
    assert slot.bookings == ()
    assert slot.capacity == 8
    assert slot.remaining_capacity == 8
    assert slot.is_full is False
    assert aggregation.issues == ()


def test_booking_in_template_slot_gets_template_capacity(make_snapshot, make_booking, package_product) -> None:
    booking = make_booking("B1", [("2025-03-03", "10:00 AM", 1)], productId="pkg-4", isPaid=True)

    aggregation = SlotAggregator().aggregate(
        ONE_DAY, make_snapshot(bookings=[booking], products=[package_product])
    )

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert [b.id for b in slot.bookings] == ["B1"]
    assert slot.paid_bookings_count == 1
    assert slot.capacity == 8
    assert slot.product_id == "pkg-4"


def test_duplicate_slot_rows_are_counted_once(make_snapshot, make_booking) -> None:
    booking = make_booking("B1", [("2025-03-03", "10:00", 1), ("2025-03-03", "10:00 AM", 1)])

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=[booking]))

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert [b.id for b in slot.bookings] == ["B1"]
    assert slot.participants == 1
    assert _kinds(aggregation)[DataQualityIssueKind.DUPLICATE_SLOT_ROW] == 1


def test_second_instructor_at_same_time_and_technique_is_folded_and_reported(make_snapshot) -> None:
    template = AvailabilityTemplate.model_validate(
        {"Monday": [{"time": "10:00", "instructorId": 1}, {"time": "10:00 AM", "instructorId": 2}]}
    )

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(availability=template))

    assert [slot.instructor_id for slot in aggregation.slots()] == [1]
    [issue] = aggregation.issues
    assert issue.kind == DataQualityIssueKind.SHADOWED_SLOT
    assert issue.date == "2025-03-03"
    assert "instructor 2 folded into instructor 1" in issue.detail


def test_orphaned_instructor_is_reassigned_to_first_roster_entry(make_booking) -> None:
    booking = make_booking("B1", [("2025-03-04", "11:00", 99)])
    snapshot = ScheduleSnapshot(
        bookings=[booking],
        instructors=[Instructor(id=1, name="Ana"), Instructor(id=2, name="Luis")],
    )

    aggregation = SlotAggregator().aggregate(DateRange(start=TUESDAY, end=TUESDAY), snapshot)

    [slot] = _slots_on(aggregation, 1, "2025-03-04")
    assert slot.instructor_id == 1
    assert [b.id for b in slot.bookings] == ["B1"]
    assert 99 not in aggregation.grid
    [issue] = aggregation.issues
    assert issue.kind == DataQualityIssueKind.ORPHANED_INSTRUCTOR
    assert issue.booking_id == "B1"


def test_ad_hoc_slot_with_defaulted_technique_uses_global_capacity(make_booking, capacity_config) -> None:
    snapshot = ScheduleSnapshot(
        bookings=[make_booking("B1", [("2025-03-04", "11:00", 1)])],
        instructors=[Instructor(id=1, name="Ana")],
        capacity_config=capacity_config,
    )

    [slot] = _slots_on(
        SlotAggregator().aggregate(DateRange(start=TUESDAY, end=TUESDAY), snapshot), 1, "2025-03-04"
    )

    assert slot.capacity == capacity_config.global_default == 1
    assert slot.is_full is True


def test_malformed_date_skips_only_that_slot(make_snapshot, make_booking) -> None:
    booking = make_booking("B1", [("not-a-date", "10:00", 1), ("2025-03-03", "10:00", 1)])

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=[booking]))

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert [b.id for b in slot.bookings] == ["B1"]
    [issue] = aggregation.issues
    assert issue.kind == DataQualityIssueKind.MALFORMED_DATE
    assert issue.date == "not-a-date"


def test_unparseable_time_is_reported_and_skipped(make_snapshot, make_booking) -> None:
    booking = make_booking("B1", [("2025-03-03", "banana", 1)])

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=[booking]))

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert slot.bookings == ()
    assert _kinds(aggregation)[DataQualityIssueKind.UNPARSEABLE_TIME] == 1


def test_bookings_outside_range_are_ignored(make_snapshot, make_booking) -> None:
    booking = make_booking("B1", [("2025-03-10", "10:00", 1)])

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=[booking]))

    assert all(slot.bookings == () for slot in aggregation.slots())


def test_same_time_different_techniques_are_separate_slots(make_snapshot, make_booking) -> None:
    bookings = [
        make_booking("wheel", [("2025-03-03", "10:00", 1)]),
        make_booking("paint", [("2025-03-03", "10:00", 1)], technique="painting"),
    ]

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=bookings))

    slots = _slots_on(aggregation, 1, "2025-03-03")
    assert [(s.technique, [b.id for b in s.bookings]) for s in slots] == [
        (Technique.PAINTING, ["paint"]),
        (Technique.POTTERS_WHEEL, ["wheel"]),
    ]


def test_molding_template_slot_and_hand_modeling_booking_share_a_slot(make_snapshot, make_booking) -> None:
    wednesday = DateRange(start=date(2025, 3, 5), end=date(2025, 3, 5))
    booking = make_booking("B1", [("2025-03-05", "6:00 PM", 2)], technique="hand_modeling")

    aggregation = SlotAggregator().aggregate(wednesday, make_snapshot(bookings=[booking]))

    [slot] = _slots_on(aggregation, 2, "2025-03-05")
    assert slot.technique == Technique.HAND_MODELING
    assert slot.capacity == 22
    assert [b.id for b in slot.bookings] == ["B1"]


def test_participants_follow_group_rules(make_snapshot, make_booking, group_product) -> None:
    bookings = [
        make_booking("solo", [("2025-03-03", "10:00", 1)]),
        make_booking("explicit", [("2025-03-03", "10:00", 1)], participants=3),
        make_booking(
            "group",
            [("2025-03-03", "10:00", 1)],
            product=group_product.model_dump(by_alias=True),
        ),
    ]

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=bookings))

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert slot.participants == 1 + 3 + 4
    assert slot.remaining_capacity == 0
    assert slot.is_full is True


def test_cancelled_day_hides_template_but_keeps_bookings(make_snapshot, make_booking) -> None:
    booking = make_booking("B1", [("2025-03-03", "10:00", 1)])

    aggregation = SlotAggregator().aggregate(
        ONE_DAY, make_snapshot(bookings=[booking], overrides={"2025-03-03": {"slots": None}})
    )

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert [b.id for b in slot.bookings] == ["B1"]
    assert slot.is_override_day is True


def test_override_capacity_applies_to_template_slots(make_snapshot) -> None:
    aggregation = SlotAggregator().aggregate(
        ONE_DAY, make_snapshot(overrides={"2025-03-03": {"capacity": 3}})
    )

    [slot] = _slots_on(aggregation, 1, "2025-03-03")
    assert slot.capacity == 3


def test_empty_roster_groups_under_unassigned_bucket(make_snapshot, make_booking) -> None:
    booking = make_booking("B1", [("2025-03-03", "10:00", 1)])

    aggregation = SlotAggregator().aggregate(ONE_DAY, make_snapshot(bookings=[booking], instructors=[]))

    assert list(aggregation.grid) == [UNASSIGNED_INSTRUCTOR_ID]
    assert _kinds(aggregation)[DataQualityIssueKind.EMPTY_ROSTER] == 1


def test_slots_are_sorted_by_time_within_a_day(make_booking) -> None:
    bookings = [
        make_booking("late", [("2025-03-03", "18:00", 1)]),
        make_booking("early", [("2025-03-03", "9:00 AM", 1)]),
        make_booking("mid", [("2025-03-03", "10:00", 1)]),
    ]
    snapshot = ScheduleSnapshot(bookings=bookings, instructors=[Instructor(id=1, name="Ana")])

    slots = _slots_on(SlotAggregator().aggregate(ONE_DAY, snapshot), 1, "2025-03-03")

    assert [s.time for s in slots] == ["09:00", "10:00", "18:00"]


def test_recurring_sessions_become_candidate_slots(make_snapshot, make_booking, intro_product) -> None:
    tuesday = DateRange(start=TUESDAY, end=TUESDAY)
    booking = make_booking("B1", [("2025-03-04", "7:00 PM", 1)], productId="intro-1", isPaid=True)

    aggregation = SlotAggregator().aggregate(
        tuesday, make_snapshot(bookings=[booking], products=[intro_product])
    )

    [slot] = _slots_on(aggregation, 1, "2025-03-04")
    assert slot.time == "19:00"
    assert slot.capacity == 6
    assert slot.product_id == "intro-1"
    assert [b.id for b in slot.bookings] == ["B1"]


def test_inactive_intro_product_adds_no_sessions(make_snapshot) -> None:
    product = ProductAdapter.validate_python(
        {
            "id": "intro-old",
            "type": "INTRODUCTORY_CLASS",
            "isActive": False,
            "schedulingRules": [{"dayOfWeek": 2, "time": "19:00", "instructorId": 1, "capacity": 6}],
        }
    )

    aggregation = SlotAggregator().aggregate(
        DateRange(start=TUESDAY, end=TUESDAY), make_snapshot(products=[product])
    )

    assert list(aggregation.slots()) == []


def test_aggregation_is_pure(make_snapshot, make_booking) -> None:
    snapshot = make_snapshot(
        bookings=[make_booking("B1", [("2025-03-03", "10:00", 1), ("2025-03-03", "10:00", 1)])]
    )
    before = snapshot.model_dump()

    first = SlotAggregator().aggregate(WEEK, snapshot)
    second = SlotAggregator().aggregate(WEEK, snapshot)

    assert first == second
    assert snapshot.model_dump() == before


def test_module_level_aggregate_schedule_returns_grid(make_snapshot) -> None:
    snapshot = make_snapshot()

    assert aggregate_schedule(WEEK, snapshot) == SlotAggregator().aggregate(WEEK, snapshot).grid


def test_slot_key_uses_technique_bucket() -> None:
    assert slot_key(MONDAY, "18:00", Technique.MOLDING) == "2025-03-03|18:00|hand_modeling"
    assert slot_key(MONDAY, "18:00", Technique.PAINTING) == "2025-03-03|18:00|painting"


def test_capacity_metrics(make_snapshot, make_booking) -> None:
    snapshot = make_snapshot(bookings=[make_booking("B1", [("2025-03-03", "10:00", 1)], participants=2)])

    metrics = SlotAggregator().capacity_metrics(MONDAY, 1, snapshot)
    empty = SlotAggregator().capacity_metrics(MONDAY, 0, snapshot)

    assert (metrics.total_capacity, metrics.booked_participants) == (8, 2)
    assert metrics.utilization == 0.25
    assert (empty.days, empty.total_capacity, empty.utilization) == (0, 0, 0.0)


slot_rows = st.lists(
    st.tuples(
        st.integers(min_value=0, max_value=4),
        st.sampled_from(["10:00", "10:00 AM", "18:00", "6:00 PM", "18:00:00"]),
        st.integers(min_value=1, max_value=3),
    ),
    max_size=15,
)


@hypothesis_settings(max_examples=50, deadline=None)
@given(rows=slot_rows)
def test_each_booking_appears_once_per_slot(rows) -> None:
    slots_by_booking = {}
    for booking_index, raw_time, copies in rows:
        slots_by_booking.setdefault(f"B{booking_index}", []).extend(
            [{"date": "2025-03-03", "time": raw_time, "instructorId": 1}] * copies
        )
    bookings = [
        Booking.model_validate({"id": booking_id, "slots": slots})
        for booking_id, slots in slots_by_booking.items()
    ]
    snapshot = ScheduleSnapshot(bookings=bookings, instructors=[Instructor(id=1, name="Ana")])

    aggregation = SlotAggregator().aggregate(ONE_DAY, snapshot)

    for slot in aggregation.slots():
        ids = [b.id for b in slot.bookings]
        assert len(ids) == len(set(ids))
    for booking in bookings:
        distinct_times = {row["time"] for row in slots_by_booking[booking.id]}
        normalized = {"10:00" if t.startswith("10") else "18:00" for t in distinct_times}
        holding = [s for s in aggregation.slots() if booking.id in {b.id for b in s.bookings}]
        assert sorted(s.time for s in holding) == sorted(normalized)
