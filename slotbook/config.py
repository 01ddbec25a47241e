"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import CalendarSettings, parse_clock


class CalendarDefaults(BaseModel):
    """Calendar settings used to seed a fresh data file."""
    work_start_time: str = "08:00"
    work_end_time: str = "16:30"
    slot_duration: int = 60
    admin_email: str = "admin@company.com"

    @field_validator("slot_duration")
    @classmethod
    def validate_slot_duration(cls, value: int) -> int:
        """Ensure slot duration is positive."""
        if value <= 0:
            raise ValueError("slot_duration must be greater than zero")
        return value

    @field_validator("work_start_time", "work_end_time")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Validate HH:MM format within a 24-hour day."""
        parse_clock(value)
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "CalendarDefaults":
        """Ensure the configured window opens before it closes."""
        if parse_clock(self.work_end_time) <= parse_clock(self.work_start_time):
            raise ValueError("work_end_time must be later than work_start_time")
        return self

    def to_settings(self) -> CalendarSettings:
        return CalendarSettings(
            slot_duration=self.slot_duration,
            work_start_time=self.work_start_time,
            work_end_time=self.work_end_time,
            admin_email=self.admin_email,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    data_file: Path = Path("data/storage.json")
    log_level: str = "WARNING"
    calendar: CalendarDefaults = Field(default_factory=CalendarDefaults)
    exclude_days: List[int] = Field(default_factory=lambda: [5, 6])  # Saturday, Sunday

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA timezone names early."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    def resolve_data_file(self, base_dir: Path) -> Path:
        """Resolve a relative data file path against the config file's directory."""
        if self.data_file.is_absolute():
            return self.data_file
        return base_dir / self.data_file

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
