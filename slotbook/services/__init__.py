"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling import EmployeeSchedule, SchedulingService, StorageProtocol

__all__ = ["EmployeeSchedule", "SchedulingService", "StorageProtocol"]
