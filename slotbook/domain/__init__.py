"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    AssignmentStatus,
    CalendarSettings,
    Employee,
    TimeRange,
    TimeSlot,
    WorkAssignment,
    WorkHours,
    WorkType,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "AssignmentStatus",
    "CalendarSettings",
    "Employee",
    "TimeRange",
    "TimeSlot",
    "WorkAssignment",
    "WorkHours",
    "WorkType",
    "SlotCalculator",
]
