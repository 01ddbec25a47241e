"""
Domain models for employees, assignments and time slot calculations.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import pendulum
from pendulum import DateTime

DEFAULT_TIMEZONE = "Europe/Berlin"

Instant = Union[DateTime, datetime, date, str]


def parse_datetime(value: Instant, tz: str = DEFAULT_TIMEZONE) -> DateTime:
    """
    Coerce an ISO-8601 string, date or datetime into a pendulum DateTime.

    Values carrying an offset keep it; naive values and plain dates are
    interpreted as wall-clock time in ``tz``.

    Raises:
        ValueError: If the value cannot be interpreted as an instant
    """
    if isinstance(value, DateTime):
        return value
    if isinstance(value, datetime):
        return pendulum.instance(value, tz=tz)
    if isinstance(value, date):
        return pendulum.datetime(value.year, value.month, value.day, tz=tz)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date value: {value!r}")

    parsed = pendulum.parse(value.strip(), tz=tz)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Invalid date value: {value!r}")
    return parsed


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` 24-hour clock string."""
    try:
        hour_str, minute_str = value.split(":")
        return time(hour=int(hour_str), minute=int(minute_str))
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from exc


def to_utc_string(value: DateTime) -> str:
    """Serialize an instant as an ISO-8601 UTC string."""
    return value.in_timezone("UTC").to_iso8601_string()


def ranges_overlap(
    start: DateTime,
    end: DateTime,
    other_start: DateTime,
    other_end: DateTime,
) -> bool:
    """
    Half-open overlap test between ``[start, end)`` and ``[other_start, other_end)``.

    A range overlaps when its start lies inside the other range, when its end
    lies inside ``(other_start, other_end]``, or when it contains the other
    range. Ranges that only share a boundary instant do not overlap.
    """
    return (
        (other_start <= start < other_end)
        or (other_start < end <= other_end)
        or (start <= other_start and end >= other_end)
    )


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return ranges_overlap(self.start, self.end, other.start, other.end)

    def contains(self, instant: DateTime) -> bool:
        """Check if an instant falls inside the half-open range."""
        return self.start <= instant < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class AssignmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkType(str, Enum):
    MEASUREMENT = "measurement"
    MAINTENANCE = "maintenance"
    DEMOLITION = "demolition"
    CONSULTATION = "consultation"


@dataclass(frozen=True)
class WorkHours:
    """
    Daily availability window of an employee as ``HH:MM`` wall-clock strings.
    """
    start: str
    end: str

    def window_for_day(self, day: DateTime) -> Tuple[DateTime, DateTime]:
        """
        Anchor the window to a calendar day in that day's timezone.

        The window is returned as-is even when it is empty or inverted.
        """
        start_clock = parse_clock(self.start)
        end_clock = parse_clock(self.end)

        start = day.set(
            hour=start_clock.hour,
            minute=start_clock.minute,
            second=0,
            microsecond=0
        )
        end = day.set(
            hour=end_clock.hour,
            minute=end_clock.minute,
            second=0,
            microsecond=0
        )

        return start, end

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Employee:
    id: str
    name: str
    work_hours: WorkHours
    email: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Employee":
        hours = data.get("workHours") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            work_hours=WorkHours(start=hours.get("start", ""), end=hours.get("end", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "workHours": self.work_hours.to_dict(),
        }


@dataclass(frozen=True)
class WorkAssignment:
    """
    A booked appointment of one employee with one client.
    """
    id: str
    employee_id: str
    start_time: DateTime
    end_time: DateTime
    status: AssignmentStatus = AssignmentStatus.SCHEDULED
    client_name: str = ""
    client_phone: str = ""
    client_address: str = ""
    work_type: WorkType = WorkType.CONSULTATION
    comment: Optional[str] = None
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None

    @property
    def is_scheduled(self) -> bool:
        return self.status == AssignmentStatus.SCHEDULED

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Check if ``[start, end)`` overlaps this assignment."""
        return ranges_overlap(start, end, self.start_time, self.end_time)

    def with_changes(self, **changes: Any) -> "WorkAssignment":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz: str = DEFAULT_TIMEZONE) -> "WorkAssignment":
        created_at = data.get("createdAt")
        updated_at = data.get("updatedAt")
        return cls(
            id=data["id"],
            employee_id=data["employeeId"],
            start_time=parse_datetime(data["startTime"], tz),
            end_time=parse_datetime(data["endTime"], tz),
            status=AssignmentStatus(data.get("status", AssignmentStatus.SCHEDULED.value)),
            client_name=data.get("clientName", ""),
            client_phone=data.get("clientPhone", ""),
            client_address=data.get("clientAddress", ""),
            work_type=WorkType(data.get("workType", WorkType.CONSULTATION.value)),
            comment=data.get("comment"),
            created_at=parse_datetime(created_at, tz) if created_at else None,
            updated_at=parse_datetime(updated_at, tz) if updated_at else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "employeeId": self.employee_id,
            "clientName": self.client_name,
            "clientPhone": self.client_phone,
            "clientAddress": self.client_address,
            "workType": self.work_type.value,
            "startTime": to_utc_string(self.start_time),
            "endTime": to_utc_string(self.end_time),
            "status": self.status.value,
        }
        if self.comment is not None:
            data["comment"] = self.comment
        if self.created_at is not None:
            data["createdAt"] = to_utc_string(self.created_at)
        if self.updated_at is not None:
            data["updatedAt"] = to_utc_string(self.updated_at)
        return data


@dataclass(frozen=True)
class CalendarSettings:
    """
    Global calendar settings.

    Only ``slot_duration`` drives slot generation; the per-day window always
    comes from the employee's own work hours.
    """
    slot_duration: int = 60
    work_start_time: str = "08:00"
    work_end_time: str = "16:30"
    admin_email: str = "admin@company.com"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarSettings":
        defaults = cls()
        return cls(
            slot_duration=int(data.get("slotDuration", defaults.slot_duration)),
            work_start_time=data.get("workStartTime", defaults.work_start_time),
            work_end_time=data.get("workEndTime", defaults.work_end_time),
            admin_email=data.get("adminEmail", defaults.admin_email),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workStartTime": self.work_start_time,
            "workEndTime": self.work_end_time,
            "slotDuration": self.slot_duration,
            "adminEmail": self.admin_email,
        }


@dataclass(frozen=True)
class TimeSlot:
    """
    A generated slot of one employee, either bookable or occupied.
    """
    time_range: TimeRange
    employee_id: str
    available: bool = True
    assignment_id: Optional[str] = field(default=None)

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "start": to_utc_string(self.start),
            "end": to_utc_string(self.end),
            "available": self.available,
            "employeeId": self.employee_id,
        }
        if self.assignment_id is not None:
            data["assignmentId"] = self.assignment_id
        return data

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM
        """
        weekday = self.start.format("dddd")
        date_str = self.start.format("DD.MM.YYYY")
        time_str = f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        duration = self.time_range.duration_minutes()

        return f"{weekday}, {date_str} | {time_str} ({duration} min)"
