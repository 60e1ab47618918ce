"""
Configuration management using Pydantic models loaded from YAML.
"""

import re
from datetime import date, time
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain.models import DEFAULT_BUSINESS_HOURS, WEEKDAY_NAMES, BusinessHours, Holiday


_TIME_OF_DAY = re.compile(r"^\d{2}:\d{2}$")


def _to_time(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":"))
    return time(hour=hours, minute=minutes)


class HolidayConfig(BaseModel):
    """A holiday entry as stored in the business hours settings record."""
    date: str
    name: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        """Ensure the date is an ISO calendar date (YYYY-MM-DD)."""
        try:
            date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"Invalid holiday date '{value}', expected YYYY-MM-DD") from exc
        return value

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if len(value.strip()) < 3:
            raise ValueError("Holiday name must have at least 3 characters")
        return value


class BusinessHoursConfig(BaseModel):
    """
    Business hours settings record.

    Field aliases match the camelCase JSON kept under the ``business_hours``
    settings key, so the same model parses YAML and persistence payloads.
    """
    model_config = ConfigDict(populate_by_name=True)

    weekdays: List[str] = Field(default_factory=lambda: list(WEEKDAY_NAMES[:6]))
    opening_time: str = Field(default="08:00", alias="openingTime")
    closing_time: str = Field(default="20:00", alias="closingTime")
    slot_duration: int = Field(default=30, alias="slotDuration")
    holidays: List[HolidayConfig] = Field(default_factory=list)

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, value: List[str]) -> List[str]:
        """Normalise weekday names and reject unknown ones."""
        if not value:
            raise ValueError("At least one weekday must be open")
        normalized = [day.strip().lower() for day in value]
        unknown = [day for day in normalized if day not in WEEKDAY_NAMES]
        if unknown:
            raise ValueError(f"Unknown weekday name(s): {unknown}")
        return list(dict.fromkeys(normalized))

    @field_validator("opening_time", "closing_time")
    @classmethod
    def validate_time_of_day(cls, value: str) -> str:
        """Validate HH:MM format within a 24h day."""
        if not _TIME_OF_DAY.match(value):
            raise ValueError(f"Invalid time '{value}', expected HH:MM")
        hours, minutes = (int(part) for part in value.split(":"))
        if hours > 23 or minutes > 59:
            raise ValueError(f"Invalid time '{value}', expected HH:MM")
        return value

    @field_validator("slot_duration")
    @classmethod
    def validate_slot_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("slotDuration must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure closing time is after opening time."""
        if _to_time(self.closing_time) <= _to_time(self.opening_time):
            raise ValueError("closingTime must be later than openingTime")
        return self

    def to_domain(self) -> BusinessHours:
        """Convert to the domain ``BusinessHours`` value."""
        return BusinessHours(
            weekdays=frozenset(self.weekdays),
            opening_time=_to_time(self.opening_time),
            closing_time=_to_time(self.closing_time),
            slot_duration_minutes=self.slot_duration,
            holidays=tuple(
                Holiday(date=date.fromisoformat(h.date), name=h.name)
                for h in self.holidays
            ),
        )

    @classmethod
    def from_domain(cls, business_hours: BusinessHours) -> "BusinessHoursConfig":
        return cls(
            weekdays=[day for day in WEEKDAY_NAMES if day in business_hours.weekdays],
            opening_time=business_hours.opening_time.strftime("%H:%M"),
            closing_time=business_hours.closing_time.strftime("%H:%M"),
            slot_duration=business_hours.slot_duration_minutes,
            holidays=[
                HolidayConfig(date=h.date.isoformat(), name=h.name)
                for h in business_hours.holidays
            ],
        )


class RetryConfig(BaseModel):
    """Retry and timeout settings for persistence calls."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    timeout_seconds: float = 30.0

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_retries must be at least 1")
        return value

    @field_validator("initial_delay", "max_delay", "timeout_seconds")
    @classmethod
    def validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Delays and timeouts cannot be negative")
        return value


class SearchConfig(BaseModel):
    """Default settings for the next-available-slot search."""
    duration_minutes: int = 30
    step_minutes: int = 15
    rollover_hour: int = 22
    reopen_hour: int = 8
    max_days: int = 14
    max_attempts: int = 5000

    @field_validator("duration_minutes", "step_minutes", "max_days", "max_attempts")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Search durations and bounds must be greater than zero")
        return value

    @field_validator("rollover_hour", "reopen_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "SearchConfig":
        if self.rollover_hour <= self.reopen_hour:
            raise ValueError("rollover_hour must be later than reopen_hour")
        return self


class Provider(BaseModel):
    """Provider (staff member) configuration."""
    name: str  # Used as alias
    id: str

    def display_name(self) -> str:
        return self.name


class AppConfig(BaseModel):
    """Application configuration."""
    api_url: str = ""
    api_key_env: str = "SLOTGUARD_API_KEY"
    timezone: str = "America/Sao_Paulo"
    enforce_business_hours: bool = False
    business_hours: Optional[BusinessHoursConfig] = None
    retry: RetryConfig = Field(default_factory=RetryConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    providers: List[Provider] = Field(default_factory=list)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"api_url must be an http(s) URL, got '{value}'")
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

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, value: List[Provider]) -> List[Provider]:
        """Ensure provider aliases and ids are unique."""
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for provider in value:
            name_key = provider.name.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate provider name detected: {provider.name}")
            if provider.id in seen_ids:
                raise ValueError(f"Duplicate provider id detected: {provider.id}")
            seen_names.add(name_key)
            seen_ids.add(provider.id)
        return value

    def fallback_business_hours(self) -> BusinessHours:
        """Business hours to use when persistence has no settings record."""
        if self.business_hours is None:
            return DEFAULT_BUSINESS_HOURS
        return self.business_hours.to_domain()

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

    def find_provider_by_name(self, name: str) -> Provider | None:
        """Find a provider by their name (alias)."""
        for provider in self.providers:
            if provider.name.lower() == name.lower():
                return provider
        return None

    def resolve_provider(self, identifier: str) -> str:
        """
        Resolve a provider alias or id to a provider id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        provider = self.find_provider_by_name(identifier)
        if provider:
            return provider.id

        for provider in self.providers:
            if provider.id == identifier:
                return provider.id

        if not self.providers:
            # Nothing configured: treat the identifier as a raw id
            return identifier

        raise ValueError(
            f"Unknown provider identifier: '{identifier}'. "
            f"Use a provider id or a configured name."
        )


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
