"""
Configuration management using Pydantic models.

Settings come from an optional YAML file and are then overridden by
environment variables, so deployments can stay file-less.
"""

import os
from datetime import time
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import BusinessHours


class BusinessHoursConfig(BaseModel):
    """Business-hour policy for the bookable window."""
    start_time: time = time(14, 0)
    end_time: time = time(16, 30)
    slot_duration_minutes: int = 30
    timezone: str = "Europe/Paris"
    exclude_days: List[int] = Field(default_factory=lambda: [5, 6])  # Saturday, Sunday

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_sexagesimal(cls, value):
        """
        Accept YAML 1.1 sexagesimal integers.

        PyYAML reads an unquoted ``14:30`` as the integer 870 (minutes past
        midnight), so integers are mapped back to a time of day.
        """
        if isinstance(value, int) and not isinstance(value, bool):
            hours, minutes = divmod(value, 60)
            return time(hours, minutes)
        return value

    @field_validator("slot_duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure slot duration is positive."""
        if value <= 0:
            raise ValueError("slot_duration_minutes must be greater than zero")
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

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

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure the configured window opens before it closes."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be later than start_time")
        return self

    def to_business_hours(self) -> BusinessHours:
        """Build the domain policy object."""
        return BusinessHours(
            start_time=self.start_time,
            end_time=self.end_time,
            slot_duration_minutes=self.slot_duration_minutes,
            timezone=self.timezone,
            exclude_weekdays=list(self.exclude_days),
        )


class GraphSettings(BaseModel):
    """Microsoft Graph application credentials and target mailbox."""
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    scope: str = "https://graph.microsoft.com/.default"
    calendar_email: str = ""
    timeout_seconds: float = 10.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    @property
    def is_configured(self) -> bool:
        return all([self.tenant_id, self.client_id, self.client_secret, self.calendar_email])

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class ApiSettings(BaseModel):
    """Inbound HTTP settings."""
    allowed_origins: List[str] = Field(default_factory=list)
    max_range_days: int = 90

    @field_validator("max_range_days")
    @classmethod
    def validate_max_range(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_range_days must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

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

        return cls(**_read_yaml(config_path))

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "AppConfig":
        """
        Load configuration from an optional YAML file plus environment overrides.

        A missing file is not an error here; every setting has a default or
        can come from the environment.
        """
        data: Dict[str, dict] = {}
        if config_path is not None and config_path.exists():
            data = _read_yaml(config_path)

        overrides = env_overrides(os.environ if environ is None else environ)
        for section, values in overrides.items():
            merged = dict(data.get(section) or {})
            merged.update(values)
            data[section] = merged

        return cls(**data)


# Environment variable -> (section, field)
ENV_VARS = {
    "BUSINESS_START_TIME": ("business_hours", "start_time"),
    "BUSINESS_END_TIME": ("business_hours", "end_time"),
    "APPOINTMENT_DURATION": ("business_hours", "slot_duration_minutes"),
    "BUSINESS_TIMEZONE": ("business_hours", "timezone"),
    "BUSINESS_EXCLUDED_WEEKDAYS": ("business_hours", "exclude_days"),
    "MICROSOFT_TENANT_ID": ("graph", "tenant_id"),
    "MICROSOFT_CLIENT_ID": ("graph", "client_id"),
    "MICROSOFT_CLIENT_SECRET": ("graph", "client_secret"),
    "MICROSOFT_SCOPE": ("graph", "scope"),
    "CALENDAR_EMAIL": ("graph", "calendar_email"),
    "GRAPH_TIMEOUT_SECONDS": ("graph", "timeout_seconds"),
    "ALLOWED_ORIGINS": ("api", "allowed_origins"),
    "MAX_RANGE_DAYS": ("api", "max_range_days"),
}

_LIST_FIELDS = {"exclude_days", "allowed_origins"}


def env_overrides(environ: Mapping[str, str]) -> Dict[str, dict]:
    """Collect configuration overrides from environment variables."""
    overrides: Dict[str, dict] = {}

    for name, (section, field_name) in ENV_VARS.items():
        raw = environ.get(name)
        if raw is None or raw.strip() == "":
            continue

        value: object = raw.strip()
        if field_name in _LIST_FIELDS:
            value = [item.strip() for item in raw.split(",") if item.strip()]

        overrides.setdefault(section, {})[field_name] = value

    return overrides


def _read_yaml(config_path: Path) -> dict:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping at the root level.")

    return data


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
