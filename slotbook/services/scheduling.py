"""
Application services for employee scheduling and slot booking.

The service loads data through a storage adapter and delegates availability
and conflict decisions to the domain-level ``SlotCalculator``. Depending on a
protocol rather than the concrete JSON store keeps it easy to stub in tests.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

from pendulum import DateTime

from ..domain.exceptions import (
    AssignmentConflictError,
    DuplicateEmployeeError,
    InvalidDateRangeError,
    NotFoundError,
    ValidationError,
)
from ..domain.models import (
    AssignmentStatus,
    CalendarSettings,
    Employee,
    Instant,
    TimeSlot,
    WorkAssignment,
    WorkHours,
    WorkType,
    parse_clock,
    parse_datetime,
)
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)

REQUIRED_ASSIGNMENT_FIELDS = (
    "employeeId",
    "clientName",
    "clientPhone",
    "clientAddress",
    "workType",
    "startTime",
    "endTime",
)

UPDATABLE_ASSIGNMENT_FIELDS = {
    "employeeId": "employee_id",
    "clientName": "client_name",
    "clientPhone": "client_phone",
    "clientAddress": "client_address",
    "workType": "work_type",
    "startTime": "start_time",
    "endTime": "end_time",
    "comment": "comment",
    "status": "status",
}


class StorageProtocol(Protocol):
    """Protocol describing the storage behaviour needed by the service."""

    def get_employees(self) -> List[Employee]: ...
    def get_employee_by_id(self, employee_id: str) -> Optional[Employee]: ...
    def add_employee(self, employee: Employee) -> Employee: ...
    def update_employee(self, employee: Employee) -> Optional[Employee]: ...
    def delete_employee(self, employee_id: str) -> bool: ...
    def get_work_assignments(self) -> List[WorkAssignment]: ...
    def get_work_assignment_by_id(self, assignment_id: str) -> Optional[WorkAssignment]: ...
    def add_work_assignment(self, assignment: WorkAssignment) -> WorkAssignment: ...
    def update_work_assignment(self, assignment: WorkAssignment) -> Optional[WorkAssignment]: ...
    def delete_work_assignment(self, assignment_id: str) -> bool: ...
    def get_settings(self) -> CalendarSettings: ...


@dataclass(frozen=True)
class EmployeeSchedule:
    employee: Employee
    assignments: List[WorkAssignment]


class SchedulingService:
    """
    Orchestrates storage access, validation and the availability engine.

    Booking runs the read-check-write sequence under a per-employee lock, so
    two concurrent requests for overlapping times cannot both pass the
    conflict check.
    """

    def __init__(
        self,
        storage: StorageProtocol,
        timezone: str,
        exclude_weekdays: Optional[List[int]] = None,
    ) -> None:
        self._storage = storage
        self._timezone = timezone
        self._exclude_weekdays = exclude_weekdays
        self._employee_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _calculator(self) -> SlotCalculator:
        settings = self._storage.get_settings()
        if self._exclude_weekdays is None:
            return SlotCalculator(settings=settings, timezone=self._timezone)
        return SlotCalculator(
            settings=settings,
            timezone=self._timezone,
            exclude_weekdays=self._exclude_weekdays,
        )

    def _employee_lock(self, employee_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._employee_locks[employee_id]

    def _parse_date(self, value: Optional[Instant], name: str) -> DateTime:
        if value is None or value == "":
            raise InvalidDateRangeError(f"{name} is required")
        try:
            return parse_datetime(value, self._timezone)
        except ValueError as exc:
            raise InvalidDateRangeError(f"Invalid date format for {name}: {value!r}") from exc

    # Calendar

    def get_time_slots(
        self,
        start_date: Optional[Instant],
        end_date: Optional[Instant],
        employee_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """Validate the range and compute slots for all or one employee."""
        start = self._parse_date(start_date, "startDate")
        end = self._parse_date(end_date, "endDate")

        return self._calculator().compute_time_slots(
            employees=self._storage.get_employees(),
            assignments=self._storage.get_work_assignments(),
            start_date=start,
            end_date=end,
            employee_id=employee_id,
        )

    def get_assignments_for_range(
        self,
        start_date: Optional[Instant],
        end_date: Optional[Instant],
        employee_id: Optional[str] = None,
    ) -> List[WorkAssignment]:
        start = self._parse_date(start_date, "startDate")
        end = self._parse_date(end_date, "endDate")

        return self._calculator().get_assignments_in_range(
            self._storage.get_work_assignments(),
            start,
            end,
            employee_id=employee_id,
        )

    def get_employee_schedule(
        self,
        employee_id: str,
        start_date: Optional[Instant] = None,
        end_date: Optional[Instant] = None,
    ) -> EmployeeSchedule:
        """Return an employee with the assignments starting in range (default: next 7 days)."""
        employee = self.get_employee(employee_id)
        start = self._parse_date(start_date, "startDate") if start_date else None
        end = self._parse_date(end_date, "endDate") if end_date else None

        assignments = self._calculator().get_employee_assignments_in_range(
            employee_id,
            self._storage.get_work_assignments(),
            start_date=start,
            end_date=end,
        )
        return EmployeeSchedule(employee=employee, assignments=assignments)

    # Assignments

    def list_assignments(self) -> List[WorkAssignment]:
        return self._storage.get_work_assignments()

    def get_assignment(self, assignment_id: str) -> WorkAssignment:
        assignment = self._storage.get_work_assignment_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Work assignment not found: {assignment_id}")
        return assignment

    def create_assignment(self, data: Mapping[str, Any]) -> WorkAssignment:
        """
        Validate and book a new assignment with status ``scheduled``.

        Raises:
            ValidationError: Missing fields, bad work type or times
            NotFoundError: Unknown employee
            AssignmentConflictError: The employee is already booked
        """
        missing = [name for name in REQUIRED_ASSIGNMENT_FIELDS if not data.get(name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        work_type = self._parse_work_type(data["workType"])
        start = self._parse_instant(data["startTime"], "startTime")
        end = self._parse_instant(data["endTime"], "endTime")
        if start >= end:
            raise ValidationError("startTime must be before endTime")

        employee_id = data["employeeId"]
        self.get_employee(employee_id)

        candidate = WorkAssignment(
            id="",
            employee_id=employee_id,
            start_time=start,
            end_time=end,
            status=AssignmentStatus.SCHEDULED,
            client_name=data["clientName"],
            client_phone=data["clientPhone"],
            client_address=data["clientAddress"],
            work_type=work_type,
            comment=data.get("comment"),
        )

        with self._employee_lock(employee_id):
            self._ensure_no_conflict(candidate)
            created = self._storage.add_work_assignment(candidate)

        logger.info(
            "Booked %s for employee %s (%s - %s)",
            created.id,
            employee_id,
            start.to_iso8601_string(),
            end.to_iso8601_string(),
        )
        return created

    def update_assignment(self, assignment_id: str, updates: Mapping[str, Any]) -> WorkAssignment:
        """
        Apply a partial update.

        When the result is a scheduled assignment whose employee, times or
        status changed, it is checked for conflicts against the others.
        """
        if not updates:
            raise ValidationError("Updates are required")

        current = self.get_assignment(assignment_id)
        changes: Dict[str, Any] = {}

        for key, value in updates.items():
            if key not in UPDATABLE_ASSIGNMENT_FIELDS:
                continue
            attr = UPDATABLE_ASSIGNMENT_FIELDS[key]
            if key in ("startTime", "endTime"):
                value = self._parse_instant(value, key)
            elif key == "workType":
                value = self._parse_work_type(value)
            elif key == "status":
                value = self._parse_status(value)
            changes[attr] = value

        updated = current.with_changes(**changes)
        if updated.start_time >= updated.end_time:
            raise ValidationError("startTime must be before endTime")

        if updated.employee_id != current.employee_id:
            self.get_employee(updated.employee_id)

        reschedules = any(
            attr in changes for attr in ("employee_id", "start_time", "end_time", "status")
        )

        with self._employee_lock(updated.employee_id):
            if updated.is_scheduled and reschedules:
                self._ensure_no_conflict(updated)
            saved = self._storage.update_work_assignment(updated)

        if saved is None:
            raise NotFoundError(f"Work assignment not found: {assignment_id}")
        logger.info("Updated assignment %s", assignment_id)
        return saved

    def cancel_assignment(self, assignment_id: str) -> WorkAssignment:
        return self.update_assignment(assignment_id, {"status": AssignmentStatus.CANCELLED.value})

    def delete_assignment(self, assignment_id: str) -> None:
        if not self._storage.delete_work_assignment(assignment_id):
            raise NotFoundError(f"Work assignment not found: {assignment_id}")
        logger.info("Deleted assignment %s", assignment_id)

    def _ensure_no_conflict(self, candidate: WorkAssignment) -> None:
        conflicts = self._calculator().find_conflicts(
            candidate.employee_id,
            candidate.start_time,
            candidate.end_time,
            self._storage.get_work_assignments(),
            exclude_id=candidate.id or None,
        )
        if conflicts:
            logger.warning(
                "Rejected booking for employee %s: overlaps %s",
                candidate.employee_id,
                ", ".join(a.id for a in conflicts),
            )
            raise AssignmentConflictError("Time slot is already occupied", conflicts)

    # Employees

    def list_employees(self) -> List[Employee]:
        return self._storage.get_employees()

    def get_employee(self, employee_id: str) -> Employee:
        employee = self._storage.get_employee_by_id(employee_id)
        if employee is None:
            raise NotFoundError(f"Employee not found: {employee_id}")
        return employee

    def add_employee(self, name: str, email: str, work_start: str, work_end: str) -> Employee:
        if not name or not email:
            raise ValidationError("Name and email are required")
        work_hours = self._validate_work_hours(work_start, work_end)
        self._ensure_unique_email(email)

        employee = self._storage.add_employee(
            Employee(id="", name=name, email=email, work_hours=work_hours)
        )
        logger.info("Added employee %s (%s)", employee.id, name)
        return employee

    def update_employee(self, employee_id: str, updates: Mapping[str, Any]) -> Employee:
        current = self.get_employee(employee_id)
        hours = updates.get("workHours") or {}
        work_hours = self._validate_work_hours(
            hours.get("start", current.work_hours.start),
            hours.get("end", current.work_hours.end),
        )
        updated = Employee(
            id=current.id,
            name=updates.get("name", current.name),
            email=updates.get("email", current.email),
            work_hours=work_hours,
        )
        if updated.email != current.email:
            self._ensure_unique_email(updated.email, exclude_id=current.id)
        saved = self._storage.update_employee(updated)
        if saved is None:
            raise NotFoundError(f"Employee not found: {employee_id}")
        return saved

    def _ensure_unique_email(self, email: str, exclude_id: Optional[str] = None) -> None:
        wanted = email.strip().lower()
        for employee in self._storage.get_employees():
            if employee.id != exclude_id and employee.email.strip().lower() == wanted:
                raise DuplicateEmployeeError("Employee with this email already exists")

    def delete_employee(self, employee_id: str) -> None:
        if not self._storage.delete_employee(employee_id):
            raise NotFoundError(f"Employee not found: {employee_id}")
        logger.info("Deleted employee %s", employee_id)

    def get_settings(self) -> CalendarSettings:
        return self._storage.get_settings()

    # Parsing helpers

    def _parse_instant(self, value: Any, name: str) -> DateTime:
        try:
            return parse_datetime(value, self._timezone)
        except ValueError as exc:
            raise ValidationError(f"Invalid date format for {name}: {value!r}") from exc

    @staticmethod
    def _parse_work_type(value: Any) -> WorkType:
        try:
            return WorkType(value)
        except ValueError as exc:
            raise ValidationError(f"Invalid work type: {value!r}") from exc

    @staticmethod
    def _parse_status(value: Any) -> AssignmentStatus:
        try:
            return AssignmentStatus(value)
        except ValueError as exc:
            raise ValidationError(f"Invalid status: {value!r}") from exc

    @staticmethod
    def _validate_work_hours(start: str, end: str) -> WorkHours:
        try:
            start_clock = parse_clock(start)
            end_clock = parse_clock(end)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if start_clock >= end_clock:
            raise ValidationError("Work hours must start before they end")
        return WorkHours(start=start, end=end)
