"""
JSON file storage for employees, work assignments and calendar settings.
"""

import copy
import json
import logging
import os
import secrets
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum

from ..domain.exceptions import StorageError
from ..domain.models import (
    DEFAULT_TIMEZONE,
    CalendarSettings,
    Employee,
    WorkAssignment,
)

logger = logging.getLogger(__name__)


def _generate_id(prefix: str) -> str:
    return f"{prefix}-{pendulum.now('UTC').int_timestamp * 1000}-{secrets.token_hex(5)[:9]}"


class JsonStorage:
    """
    Keeps the whole data set in one JSON document.

    The document is read lazily on first access and cached; every mutation
    rewrites the file. Mutations work on a copy of the cached document, which
    is only replaced once the new file is in place. A missing file is created
    with the default settings.
    """

    def __init__(
        self,
        data_file: Path,
        default_settings: Optional[CalendarSettings] = None,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.data_file = Path(data_file)
        self.default_settings = default_settings or CalendarSettings()
        self.timezone = timezone
        self._data: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()

    def _load_data(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.data_file.exists():
            logger.info("Creating new data file at %s", self.data_file)
            initial = {
                "employees": [],
                "workAssignments": [],
                "settings": self.default_settings.to_dict(),
            }
            self._save_data(initial)
            return initial

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.exception("Error loading data from %s", self.data_file)
            raise StorageError(f"Failed to load data from storage: {exc}") from exc

        if not isinstance(data, dict):
            raise StorageError(f"Data file {self.data_file} must contain a JSON object")

        data.setdefault("employees", [])
        data.setdefault("workAssignments", [])
        data.setdefault("settings", self.default_settings.to_dict())
        self._data = data
        return data

    def _editable_data(self) -> Dict[str, Any]:
        return copy.deepcopy(self._load_data())

    def _save_data(self, data: Dict[str, Any]) -> None:
        tmp_path = None
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.data_file.parent, prefix=f".{self.data_file.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.data_file)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.exception("Error saving data to %s", self.data_file)
            raise StorageError(f"Failed to save data to storage: {exc}") from exc
        self._data = data

    # Employees

    def get_employees(self) -> List[Employee]:
        with self._lock:
            return [Employee.from_dict(item) for item in self._load_data()["employees"]]

    def get_employee_by_id(self, employee_id: str) -> Optional[Employee]:
        for employee in self.get_employees():
            if employee.id == employee_id:
                return employee
        return None

    def add_employee(self, employee: Employee) -> Employee:
        """Persist a new employee under a freshly generated id."""
        with self._lock:
            data = self._editable_data()
            created = Employee(
                id=_generate_id("emp"),
                name=employee.name,
                email=employee.email,
                work_hours=employee.work_hours,
            )
            data["employees"].append(created.to_dict())
            self._save_data(data)
            return created

    def update_employee(self, employee: Employee) -> Optional[Employee]:
        with self._lock:
            data = self._editable_data()
            for index, item in enumerate(data["employees"]):
                if item.get("id") == employee.id:
                    data["employees"][index] = employee.to_dict()
                    self._save_data(data)
                    return employee
            return None

    def delete_employee(self, employee_id: str) -> bool:
        with self._lock:
            data = self._editable_data()
            remaining = [item for item in data["employees"] if item.get("id") != employee_id]
            if len(remaining) == len(data["employees"]):
                return False
            data["employees"] = remaining
            self._save_data(data)
            return True

    # Work assignments

    def get_work_assignments(self) -> List[WorkAssignment]:
        with self._lock:
            return [
                WorkAssignment.from_dict(item, self.timezone)
                for item in self._load_data()["workAssignments"]
            ]

    def get_work_assignment_by_id(self, assignment_id: str) -> Optional[WorkAssignment]:
        for assignment in self.get_work_assignments():
            if assignment.id == assignment_id:
                return assignment
        return None

    def add_work_assignment(self, assignment: WorkAssignment) -> WorkAssignment:
        """Persist a new assignment, generating its id and timestamps."""
        with self._lock:
            data = self._editable_data()
            now = pendulum.now("UTC")
            created = assignment.with_changes(
                id=_generate_id("assignment"),
                created_at=now,
                updated_at=now,
            )
            data["workAssignments"].append(created.to_dict())
            self._save_data(data)
            return created

    def update_work_assignment(self, assignment: WorkAssignment) -> Optional[WorkAssignment]:
        with self._lock:
            data = self._editable_data()
            for index, item in enumerate(data["workAssignments"]):
                if item.get("id") == assignment.id:
                    updated = assignment.with_changes(updated_at=pendulum.now("UTC"))
                    data["workAssignments"][index] = updated.to_dict()
                    self._save_data(data)
                    return updated
            return None

    def delete_work_assignment(self, assignment_id: str) -> bool:
        with self._lock:
            data = self._editable_data()
            remaining = [
                item for item in data["workAssignments"] if item.get("id") != assignment_id
            ]
            if len(remaining) == len(data["workAssignments"]):
                return False
            data["workAssignments"] = remaining
            self._save_data(data)
            return True

    # Settings

    def get_settings(self) -> CalendarSettings:
        with self._lock:
            return CalendarSettings.from_dict(self._load_data()["settings"])

    def update_settings(self, settings: CalendarSettings) -> CalendarSettings:
        with self._lock:
            data = self._editable_data()
            data["settings"] = settings.to_dict()
            self._save_data(data)
            return settings
