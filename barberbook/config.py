"""
Configuration management using Pydantic models loaded from YAML.

The configuration is loaded once at startup and is immutable afterwards.
"""

import os
from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain.models import WorkingHours


class BusinessHoursConfig(BaseModel):
    """Opening hours of the shop."""
    model_config = ConfigDict(frozen=True)

    start_hour: int = 8
    end_hour: int = 20
    step_minutes: int = 15
    open_days: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5])  # Sunday closed

    @field_validator("start_hour")
    @classmethod
    def validate_start_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("end_hour")
    @classmethod
    def validate_end_hour(cls, v: int) -> int:
        """Validate hour is between 1 and 24 (24 closes at midnight)."""
        if not 1 <= v <= 24:
            raise ValueError(f"end_hour must be between 1 and 24, got {v}")
        return v

    @field_validator("step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("step_minutes must be greater than zero")
        return value

    @field_validator("open_days")
    @classmethod
    def validate_open_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"open_days must be between 0 and 6, got {invalid_days}")
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
        """Ensure the shop opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self


class BookingConfig(BaseModel):
    """Booking policy switches."""
    model_config = ConfigDict(frozen=True)

    exclude_past_slots: bool = True
    enforce_business_hours: bool = True


class GoogleConfig(BaseModel):
    """
    Google OAuth client credentials.

    Empty values fall back to GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and
    GOOGLE_REFRESH_TOKEN from the environment.
    """
    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    request_timeout_seconds: float = 30

    @model_validator(mode="before")
    @classmethod
    def fill_from_environment(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, env_name in (
            ("client_id", "GOOGLE_CLIENT_ID"),
            ("client_secret", "GOOGLE_CLIENT_SECRET"),
            ("refresh_token", "GOOGLE_REFRESH_TOKEN"),
        ):
            if not data.get(key):
                data[key] = os.environ.get(env_name, "")
        return data

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout_seconds must be greater than zero")
        return value

    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


class ServiceConfig(BaseModel):
    """A bookable service from the catalog."""
    model_config = ConfigDict(frozen=True)

    id: str
    duration_minutes: int
    name: str = ""

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    def display_name(self) -> str:
        return self.name or self.id


class BarberConfig(BaseModel):
    """
    A barber and the Google calendar holding their appointments.

    An empty calendar_id is read from the CAL_<ID> environment variable.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    calendar_id: str = ""

    @model_validator(mode="before")
    @classmethod
    def fill_calendar_from_environment(cls, data):
        if isinstance(data, dict) and not data.get("calendar_id") and data.get("id"):
            data = dict(data)
            data["calendar_id"] = os.environ.get(calendar_env_name(data["id"]), "")
        return data

    @model_validator(mode="after")
    def validate_calendar(self) -> "BarberConfig":
        if not self.calendar_id:
            raise ValueError(
                f"Barber '{self.id}' has no calendar_id and "
                f"{calendar_env_name(self.id)} is not set"
            )
        return self

    def display_name(self) -> str:
        return self.name or self.id


def calendar_env_name(barber_id: str) -> str:
    """Environment variable holding the calendar of a barber, e.g. CAL_LUIS."""
    return f"CAL_{barber_id.upper()}"


class AppConfig(BaseModel):
    """Application configuration."""
    model_config = ConfigDict(frozen=True)

    timezone: str = "Europe/Madrid"
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    services: List[ServiceConfig] = Field(default_factory=list)
    barbers: List[BarberConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure service identifiers are unique."""
        seen: set[str] = set()
        for service in value:
            if service.id in seen:
                raise ValueError(f"Duplicate service id detected: {service.id}")
            seen.add(service.id)
        return value

    @field_validator("barbers")
    @classmethod
    def validate_barbers(cls, value: List[BarberConfig]) -> List[BarberConfig]:
        """Ensure barber identifiers are unique."""
        seen: set[str] = set()
        for barber in value:
            if barber.id in seen:
                raise ValueError(f"Duplicate barber id detected: {barber.id}")
            seen.add(barber.id)
        return value

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

    def find_service(self, service_id: str) -> ServiceConfig | None:
        """Find a service by its identifier."""
        for service in self.services:
            if service.id == service_id:
                return service
        return None

    def find_barber(self, barber_id: str) -> BarberConfig | None:
        """Find a barber by their identifier."""
        for barber in self.barbers:
            if barber.id == barber_id:
                return barber
        return None

    def to_working_hours(self) -> WorkingHours:
        """Build the domain working hours from the business hours section."""
        return WorkingHours(
            open_weekdays=frozenset(self.business_hours.open_days),
            start_hour=self.business_hours.start_hour,
            end_hour=self.business_hours.end_hour,
            step_minutes=self.business_hours.step_minutes,
            timezone=self.timezone,
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
