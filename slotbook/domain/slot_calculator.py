"""
Core business logic for calculating bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no storage, no I/O). Callers load employees,
assignments and settings and hand them in on every call.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from .models import (
    DEFAULT_TIMEZONE,
    CalendarSettings,
    Employee,
    Instant,
    TimeRange,
    TimeSlot,
    WorkAssignment,
    parse_datetime,
)

logger = logging.getLogger(__name__)

WEEKEND = (5, 6)  # Saturday, Sunday

SCHEDULE_LOOKAHEAD_DAYS = 7


def find_conflicts(
    employee_id: str,
    proposed_start: DateTime,
    proposed_end: DateTime,
    assignments: Iterable[WorkAssignment],
    exclude_id: Optional[str] = None,
) -> List[WorkAssignment]:
    """
    Return the scheduled assignments of an employee that overlap a proposed interval.

    Unlike slot generation this is not scoped to a single day. An empty or
    inverted proposal is rejected with ``ValueError``.
    """
    if proposed_start >= proposed_end:
        raise ValueError(
            f"Proposed start {proposed_start} must be before proposed end {proposed_end}"
        )
    return [
        assignment for assignment in assignments
        if assignment.employee_id == employee_id
        and assignment.is_scheduled
        and assignment.id != exclude_id
        and assignment.overlaps(proposed_start, proposed_end)
    ]


class SlotCalculator:
    """
    Calculates per-employee time slots and booking conflicts.

    Algorithm:
    1. Walk the date range day by day, skipping excluded weekdays
    2. Anchor each employee's work hours to the day
    3. Chop the window into ``slot_duration`` sized slots
    4. Mark slots overlapping a scheduled assignment of that day as occupied
    """

    def __init__(
        self,
        settings: CalendarSettings,
        timezone: str = DEFAULT_TIMEZONE,
        exclude_weekdays: Sequence[int] = WEEKEND,
    ):
        if settings.slot_duration <= 0:
            raise ValueError(
                f"slot_duration must be a positive number of minutes, got {settings.slot_duration}"
            )
        self.settings = settings
        self.timezone = timezone
        self.exclude_weekdays = tuple(sorted(set(WEEKEND) | set(exclude_weekdays)))

    def is_working_day(self, day: DateTime) -> bool:
        """
        Check if a given day is not an excluded weekday (0=Monday, 6=Sunday).

        Saturday and Sunday are always excluded; ``exclude_weekdays`` can only
        close further days.
        """
        return day.weekday() not in self.exclude_weekdays

    def compute_time_slots(
        self,
        employees: Sequence[Employee],
        assignments: Sequence[WorkAssignment],
        start_date: Instant,
        end_date: Instant,
        employee_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """
        Generate slots for every working day in ``[start_date, end_date]``.

        Args:
            employees: All known employees, in display order
            assignments: All assignments; only scheduled ones block slots
            start_date: First day of the range (inclusive)
            end_date: Last day of the range (inclusive)
            employee_id: Restrict the result to a single employee

        Returns:
            Slots ordered by day, then by employee order, then by start time.
            An inverted range yields an empty list.
        """
        target_employees = [
            employee for employee in employees
            if employee_id is None or employee.id == employee_id
        ]

        slots: List[TimeSlot] = []

        current = self._local(start_date).start_of("day")
        last_day = self._local(end_date).start_of("day")

        while current <= last_day:
            if self.is_working_day(current):
                for employee in target_employees:
                    slots.extend(
                        self.generate_slots_for_day(current, employee, assignments)
                    )

            current = current.add(days=1)

        logger.debug(
            "Computed %d slots for %d employee(s) between %s and %s",
            len(slots),
            len(target_employees),
            start_date,
            end_date,
        )
        return slots

    def generate_slots_for_day(
        self,
        day: Instant,
        employee: Employee,
        assignments: Sequence[WorkAssignment],
    ) -> List[TimeSlot]:
        """
        Partition an employee's work window on one day into fixed-size slots.

        The loop runs while the slot *start* lies before the end of the work
        window, so a trailing slot may extend past it when the window is not a
        multiple of the slot duration. Empty or inverted windows yield nothing.
        """
        day = self._local(day).start_of("day")
        work_start, work_end = employee.work_hours.window_for_day(day)

        day_assignments = [
            assignment for assignment in assignments
            if assignment.employee_id == employee.id
            and assignment.is_scheduled
            and self._local(assignment.start_time).date() == day.date()
        ]

        slots: List[TimeSlot] = []
        current = work_start

        while current < work_end:
            slot_end = current.add(minutes=self.settings.slot_duration)

            occupying = next(
                (a for a in day_assignments if a.overlaps(current, slot_end)),
                None
            )

            slots.append(
                TimeSlot(
                    time_range=TimeRange(start=current, end=slot_end),
                    employee_id=employee.id,
                    available=occupying is None,
                    assignment_id=occupying.id if occupying else None,
                )
            )

            current = slot_end

        return slots

    def find_conflicts(
        self,
        employee_id: str,
        proposed_start: Instant,
        proposed_end: Instant,
        assignments: Sequence[WorkAssignment],
        exclude_id: Optional[str] = None,
    ) -> List[WorkAssignment]:
        """Return scheduled assignments of the employee overlapping the proposal."""
        return find_conflicts(
            employee_id,
            self._local(proposed_start),
            self._local(proposed_end),
            assignments,
            exclude_id=exclude_id,
        )

    def has_conflict(
        self,
        employee_id: str,
        proposed_start: Instant,
        proposed_end: Instant,
        assignments: Sequence[WorkAssignment],
        exclude_id: Optional[str] = None,
    ) -> bool:
        """Check whether a proposed booking collides with a scheduled assignment."""
        return bool(
            self.find_conflicts(
                employee_id,
                proposed_start,
                proposed_end,
                assignments,
                exclude_id=exclude_id,
            )
        )

    def get_employee_assignments_in_range(
        self,
        employee_id: str,
        assignments: Sequence[WorkAssignment],
        start_date: Optional[Instant] = None,
        end_date: Optional[Instant] = None,
        now: Optional[DateTime] = None,
    ) -> List[WorkAssignment]:
        """
        Return an employee's assignments starting within ``[start_date, end_date]``.

        Missing bounds default to now and now plus one week.
        """
        now = now or pendulum.now(self.timezone)
        start = self._local(start_date) if start_date is not None else now
        end = (
            self._local(end_date) if end_date is not None
            else now.add(days=SCHEDULE_LOOKAHEAD_DAYS)
        )

        return [
            assignment for assignment in assignments
            if assignment.employee_id == employee_id
            and start <= assignment.start_time <= end
        ]

    def get_assignments_in_range(
        self,
        assignments: Sequence[WorkAssignment],
        start_date: Instant,
        end_date: Instant,
        employee_id: Optional[str] = None,
    ) -> List[WorkAssignment]:
        """
        Return assignments touching ``[start_date, end_date]``.

        An assignment matches when it starts or ends inside the range, or
        spans the whole range. Status is not considered.
        """
        start = self._local(start_date)
        end = self._local(end_date)

        return [
            assignment for assignment in assignments
            if (employee_id is None or assignment.employee_id == employee_id)
            and (
                start <= assignment.start_time <= end
                or start <= assignment.end_time <= end
                or (assignment.start_time <= start and assignment.end_time >= end)
            )
        ]

    def _local(self, value: Instant) -> DateTime:
        return parse_datetime(value, self.timezone).in_timezone(self.timezone)


def compute_time_slots(
    employees: Sequence[Employee],
    assignments: Sequence[WorkAssignment],
    settings: CalendarSettings,
    start_date: Instant,
    end_date: Instant,
    employee_id: Optional[str] = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> List[TimeSlot]:
    """Compute slots for a date range with a one-off calculator."""
    calculator = SlotCalculator(settings=settings, timezone=timezone)
    return calculator.compute_time_slots(
        employees,
        assignments,
        start_date,
        end_date,
        employee_id=employee_id,
    )


def has_conflict(
    employee_id: str,
    proposed_start: Instant,
    proposed_end: Instant,
    assignments: Sequence[WorkAssignment],
    timezone: str = DEFAULT_TIMEZONE,
) -> bool:
    """Check a proposed booking against all scheduled assignments of the employee."""
    return bool(
        find_conflicts(
            employee_id,
            parse_datetime(proposed_start, timezone),
            parse_datetime(proposed_end, timezone),
            assignments,
        )
    )


def get_employee_assignments_in_range(
    employee_id: str,
    assignments: Sequence[WorkAssignment],
    start_date: Optional[Instant] = None,
    end_date: Optional[Instant] = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> List[WorkAssignment]:
    """Return an employee's assignments starting in range (default: the next week)."""
    calculator = SlotCalculator(settings=CalendarSettings(), timezone=timezone)
    return calculator.get_employee_assignments_in_range(
        employee_id,
        assignments,
        start_date=start_date,
        end_date=end_date,
    )
