"""
Tests for slot calculator.
"""

import copy

import pendulum
import pytest

from slotbook.domain.models import (
    AssignmentStatus,
    CalendarSettings,
    Employee,
    WorkAssignment,
    WorkHours,
)
from slotbook.domain.slot_calculator import (
    SlotCalculator,
    compute_time_slots,
    get_employee_assignments_in_range,
    has_conflict,
)

TZ = "Europe/Berlin"

MONDAY = "2024-01-15"
TUESDAY = "2024-01-16"
SATURDAY = "2024-01-13"
SUNDAY = "2024-01-14"


def at(value: str):
    return pendulum.parse(value, tz=TZ)


def make_employee(employee_id="e1", start="08:00", end="10:00"):
    return Employee(id=employee_id, name=employee_id.upper(), work_hours=WorkHours(start=start, end=end))


def make_assignment(
    assignment_id,
    start,
    end,
    employee_id="e1",
    status=AssignmentStatus.SCHEDULED,
):
    return WorkAssignment(
        id=assignment_id,
        employee_id=employee_id,
        start_time=at(start),
        end_time=at(end),
        status=status,
    )


def make_calculator(slot_duration=60):
    return SlotCalculator(settings=CalendarSettings(slot_duration=slot_duration), timezone=TZ)


class TestSlotGeneration:
    """Tests for per-day slot generation."""

    def test_single_monday_two_hourly_slots(self):
        """Work hours 08:00-10:00 with hourly slots give two free slots."""
        slots = compute_time_slots(
            employees=[make_employee()],
            assignments=[],
            settings=CalendarSettings(slot_duration=60),
            start_date=MONDAY,
            end_date=MONDAY,
            timezone=TZ,
        )

        assert len(slots) == 2
        assert [(s.start, s.end) for s in slots] == [
            (at("2024-01-15 08:00"), at("2024-01-15 09:00")),
            (at("2024-01-15 09:00"), at("2024-01-15 10:00")),
        ]
        assert all(s.available for s in slots)
        assert all(s.employee_id == "e1" for s in slots)
        assert all(s.assignment_id is None for s in slots)

    @pytest.mark.parametrize(
        "start,end,duration",
        [
            ("08:00", "16:30", 60),
            ("08:00", "16:30", 30),
            ("09:15", "12:00", 45),
            ("07:00", "19:00", 25),
        ],
    )
    def test_partition_covers_window_without_gaps(self, start, end, duration):
        """Slots start at the window start, step by the duration and never leave gaps."""
        employee = make_employee(start=start, end=end)
        calculator = make_calculator(duration)

        slots = calculator.generate_slots_for_day(MONDAY, employee, [])
        work_start, work_end = employee.work_hours.window_for_day(at(MONDAY))

        assert slots[0].start == work_start
        for previous, current in zip(slots, slots[1:]):
            assert current.start == previous.end
            assert (current.start - previous.start).in_minutes() == duration
        assert slots[-1].start < work_end
        assert slots[-1].end >= work_end

    def test_trailing_partial_slot_extends_past_work_end(self):
        """A window that is not a multiple of the duration still emits its last slot."""
        slots = make_calculator(60).generate_slots_for_day(
            MONDAY, make_employee(start="08:00", end="09:30"), []
        )

        assert len(slots) == 2
        assert slots[-1].start == at("2024-01-15 09:00")
        assert slots[-1].end == at("2024-01-15 10:00")

    @pytest.mark.parametrize("start,end", [("08:00", "08:00"), ("10:00", "08:00")])
    def test_empty_or_inverted_window_yields_no_slots(self, start, end):
        """Zero-length and inverted work hours produce nothing, without error."""
        slots = make_calculator().generate_slots_for_day(
            MONDAY, make_employee(start=start, end=end), []
        )

        assert slots == []

    def test_non_positive_slot_duration_rejected(self):
        with pytest.raises(ValueError, match="slot_duration"):
            make_calculator(0)


class TestOccupancy:
    """Tests for marking slots occupied by assignments."""

    def test_scheduled_assignment_occupies_matching_slot(self):
        """Only the 09:00 slot is taken and it carries the assignment id."""
        employee = make_employee(start="08:00", end="12:00")
        assignment = make_assignment("a1", "2024-01-15 09:00", "2024-01-15 10:00")

        slots = make_calculator().generate_slots_for_day(MONDAY, employee, [assignment])

        occupied = [s for s in slots if not s.available]
        assert len(occupied) == 1
        assert occupied[0].start == at("2024-01-15 09:00")
        assert occupied[0].assignment_id == "a1"
        assert all(s.assignment_id is None for s in slots if s.available)

    def test_partial_overlap_occupies_both_slots(self):
        """An assignment straddling a slot boundary blocks both slots."""
        employee = make_employee(start="08:00", end="12:00")
        assignment = make_assignment("a1", "2024-01-15 09:30", "2024-01-15 10:30")

        slots = make_calculator().generate_slots_for_day(MONDAY, employee, [assignment])

        assert [s.available for s in slots] == [True, False, False, True]
        assert [s.assignment_id for s in slots] == [None, "a1", "a1", None]

    def test_short_assignment_inside_slot_occupies_it(self):
        """An assignment fully contained in a slot blocks it."""
        employee = make_employee(start="08:00", end="10:00")
        assignment = make_assignment("a1", "2024-01-15 08:15", "2024-01-15 08:45")

        slots = make_calculator().generate_slots_for_day(MONDAY, employee, [assignment])

        assert [s.available for s in slots] == [False, True]

    @pytest.mark.parametrize("status", [AssignmentStatus.CANCELLED, AssignmentStatus.COMPLETED])
    def test_inactive_statuses_never_block(self, status):
        """Cancelled and completed assignments leave every slot free."""
        employee = make_employee()
        assignment = make_assignment("a1", "2024-01-15 08:00", "2024-01-15 09:00", status=status)

        slots = make_calculator().generate_slots_for_day(MONDAY, employee, [assignment])

        assert all(s.available for s in slots)

    def test_other_employee_assignment_is_ignored(self):
        """An assignment for A never affects B."""
        alice = make_employee("alice")
        bob = make_employee("bob")
        assignment = make_assignment("a1", "2024-01-15 08:00", "2024-01-15 10:00", employee_id="alice")

        slots = make_calculator().compute_time_slots([alice, bob], [assignment], MONDAY, MONDAY)

        assert all(not s.available for s in slots if s.employee_id == "alice")
        assert all(s.available for s in slots if s.employee_id == "bob")

    def test_assignment_on_other_day_is_ignored(self):
        """Occupancy is scoped to assignments starting on the same day."""
        assignment = make_assignment("a1", "2024-01-16 08:00", "2024-01-16 09:00")

        slots = make_calculator().generate_slots_for_day(MONDAY, make_employee(), [assignment])

        assert all(s.available for s in slots)

    def test_utc_assignment_matches_local_slot(self):
        """08:00Z is 09:00 in Berlin in January."""
        assignment = WorkAssignment(
            id="a1",
            employee_id="e1",
            start_time=pendulum.parse("2024-01-15T08:00:00Z"),
            end_time=pendulum.parse("2024-01-15T09:00:00Z"),
        )

        slots = make_calculator().generate_slots_for_day(MONDAY, make_employee(), [assignment])

        assert [s.available for s in slots] == [True, False]


class TestDateRange:
    """Tests for iterating a date range."""

    def test_exclude_weekends(self):
        """Friday to Monday only produces Friday and Monday."""
        slots = make_calculator().compute_time_slots(
            [make_employee()], [], "2024-01-12", MONDAY
        )

        days = sorted({s.start.date().isoformat() for s in slots})
        assert days == ["2024-01-12", "2024-01-15"]

    def test_weekend_only_range_is_empty(self):
        slots = make_calculator().compute_time_slots(
            [make_employee()], [], SATURDAY, SUNDAY
        )

        assert slots == []

    def test_inverted_range_is_empty(self):
        slots = make_calculator().compute_time_slots(
            [make_employee()], [], TUESDAY, MONDAY
        )

        assert slots == []

    def test_order_is_day_then_employee(self):
        """Slots are grouped by day first, then by employee in the given order."""
        employees = [make_employee("b"), make_employee("a")]

        slots = make_calculator().compute_time_slots(employees, [], MONDAY, TUESDAY)

        assert [(s.start.day, s.employee_id) for s in slots] == [
            (15, "b"), (15, "b"), (15, "a"), (15, "a"),
            (16, "b"), (16, "b"), (16, "a"), (16, "a"),
        ]

    def test_employee_filter(self):
        employees = [make_employee("a"), make_employee("b")]

        slots = make_calculator().compute_time_slots(employees, [], MONDAY, MONDAY, employee_id="b")

        assert {s.employee_id for s in slots} == {"b"}
        assert len(slots) == 2

    def test_unknown_employee_filter_is_empty(self):
        slots = make_calculator().compute_time_slots(
            [make_employee()], [], MONDAY, MONDAY, employee_id="nobody"
        )

        assert slots == []

    def test_time_component_of_bounds_is_ignored(self):
        """Bounds are handled at day granularity."""
        slots = make_calculator().compute_time_slots(
            [make_employee()], [], at("2024-01-15 11:00"), at("2024-01-16 00:00")
        )

        assert len(slots) == 4

    def test_custom_excluded_weekdays(self):
        calculator = SlotCalculator(
            settings=CalendarSettings(slot_duration=60),
            timezone=TZ,
            exclude_weekdays=[0],  # Monday
        )

        slots = calculator.compute_time_slots([make_employee()], [], MONDAY, TUESDAY)

        assert {s.start.day for s in slots} == {16}

    def test_weekend_cannot_be_reopened(self):
        calculator = SlotCalculator(
            settings=CalendarSettings(slot_duration=60),
            timezone=TZ,
            exclude_weekdays=[],
        )

        assert calculator.compute_time_slots([make_employee()], [], SATURDAY, SUNDAY) == []
        assert calculator.exclude_weekdays == (5, 6)

    def test_repeated_calls_are_identical_and_do_not_mutate_inputs(self):
        """Same inputs give deep-equal outputs; inputs stay untouched."""
        employees = [make_employee("a"), make_employee("b")]
        assignments = [make_assignment("a1", "2024-01-15 08:00", "2024-01-15 09:00", employee_id="a")]
        employees_before = copy.deepcopy(employees)
        assignments_before = copy.deepcopy(assignments)
        calculator = make_calculator()

        first = calculator.compute_time_slots(employees, assignments, MONDAY, "2024-01-19")
        second = calculator.compute_time_slots(employees, assignments, MONDAY, "2024-01-19")

        assert first == second
        assert employees == employees_before
        assert assignments == assignments_before


class TestConflicts:
    """Tests for booking conflict detection."""

    existing = [make_assignment("a1", "2024-01-15 09:00", "2024-01-15 10:00")]

    @pytest.mark.parametrize(
        "start,end,expected",
        [
            ("2024-01-15 08:30", "2024-01-15 09:30", True),   # start before, end inside
            ("2024-01-15 09:30", "2024-01-15 10:30", True),   # start inside
            ("2024-01-15 09:00", "2024-01-15 10:00", True),   # identical
            ("2024-01-15 08:00", "2024-01-15 11:00", True),   # contains existing
            ("2024-01-15 09:15", "2024-01-15 09:45", True),   # inside existing
            ("2024-01-15 10:00", "2024-01-15 11:00", False),  # adjacent after
            ("2024-01-15 08:00", "2024-01-15 09:00", False),  # adjacent before
            ("2024-01-16 09:00", "2024-01-16 10:00", False),  # other day
        ],
    )
    def test_overlap_cases(self, start, end, expected):
        assert make_calculator().has_conflict("e1", start, end, self.existing) is expected

    @pytest.mark.parametrize(
        "start,end",
        [
            ("2024-01-15T10:00:00+01:00", "2024-01-15T10:00:00+01:00"),  # empty, at existing end
            ("2024-01-15T09:30:00+01:00", "2024-01-15T09:30:00+01:00"),  # empty, inside existing
            ("2024-01-15T11:00:00+01:00", "2024-01-15T10:00:00+01:00"),  # inverted
        ],
    )
    def test_degenerate_proposal_rejected(self, start, end):
        with pytest.raises(ValueError, match="must be before"):
            has_conflict("e1", start, end, self.existing)
        with pytest.raises(ValueError):
            make_calculator().has_conflict("e1", start, end, self.existing)

    def test_containment(self):
        """Proposed 09:00-11:00 contains existing 09:30-10:00."""
        existing = [make_assignment("a1", "2024-01-15 09:30", "2024-01-15 10:00")]

        assert has_conflict(
            "e1", "2024-01-15T09:00:00+01:00", "2024-01-15T11:00:00+01:00", existing
        )

    def test_conflict_is_not_day_scoped(self):
        """A multi-day assignment blocks a booking on a later day."""
        existing = [make_assignment("a1", "2024-01-15 09:00", "2024-01-17 17:00")]

        assert has_conflict("e1", "2024-01-16T10:00:00+01:00", "2024-01-16T11:00:00+01:00", existing)

    @pytest.mark.parametrize("status", [AssignmentStatus.CANCELLED, AssignmentStatus.COMPLETED])
    def test_inactive_statuses_do_not_conflict(self, status):
        existing = [make_assignment("a1", "2024-01-15 09:00", "2024-01-15 10:00", status=status)]

        assert not has_conflict("e1", "2024-01-15T09:00:00+01:00", "2024-01-15T10:00:00+01:00", existing)

    def test_other_employee_does_not_conflict(self):
        assert not make_calculator().has_conflict(
            "e2", "2024-01-15 09:00", "2024-01-15 10:00", self.existing
        )

    def test_exclude_id_skips_assignment_being_updated(self):
        calculator = make_calculator()

        assert not calculator.has_conflict(
            "e1", "2024-01-15 09:30", "2024-01-15 10:30", self.existing, exclude_id="a1"
        )

    def test_find_conflicts_returns_assignments(self):
        existing = self.existing + [make_assignment("a2", "2024-01-15 10:00", "2024-01-15 11:00")]

        conflicts = make_calculator().find_conflicts(
            "e1", "2024-01-15 09:30", "2024-01-15 10:30", existing
        )

        assert [a.id for a in conflicts] == ["a1", "a2"]


class TestAssignmentRanges:
    """Tests for range-based assignment lookups."""

    assignments = [
        make_assignment("a1", "2024-01-15 09:00", "2024-01-15 10:00"),
        make_assignment("a2", "2024-01-18 09:00", "2024-01-18 10:00", status=AssignmentStatus.CANCELLED),
        make_assignment("a3", "2024-01-25 09:00", "2024-01-25 10:00"),
        make_assignment("b1", "2024-01-15 09:00", "2024-01-15 10:00", employee_id="e2"),
    ]

    def test_employee_assignments_in_explicit_range(self):
        """Status is ignored; only the employee and start time matter."""
        found = get_employee_assignments_in_range(
            "e1", self.assignments, "2024-01-15", "2024-01-19", timezone=TZ
        )

        assert [a.id for a in found] == ["a1", "a2"]

    def test_employee_assignments_default_to_next_week(self):
        calculator = make_calculator()

        found = calculator.get_employee_assignments_in_range(
            "e1", self.assignments, now=at("2024-01-20 12:00")
        )

        assert [a.id for a in found] == ["a3"]

    def test_range_bounds_are_inclusive(self):
        found = make_calculator().get_employee_assignments_in_range(
            "e1", self.assignments, at("2024-01-15 09:00"), at("2024-01-15 09:00")
        )

        assert [a.id for a in found] == ["a1"]

    def test_assignments_touching_range(self):
        """Assignments starting, ending or spanning the range are returned."""
        spanning = make_assignment("long", "2024-01-10 08:00", "2024-01-30 08:00")
        calculator = make_calculator()

        found = calculator.get_assignments_in_range(
            self.assignments + [spanning], "2024-01-15", "2024-01-19"
        )

        assert [a.id for a in found] == ["a1", "a2", "b1", "long"]

    def test_assignments_touching_range_filtered_by_employee(self):
        found = make_calculator().get_assignments_in_range(
            self.assignments, "2024-01-15", "2024-01-19", employee_id="e2"
        )

        assert [a.id for a in found] == ["b1"]
