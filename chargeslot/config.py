"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import MalformedTimeError, UnknownPortError, UnknownStationError
from .domain.models import DEFAULT_DURATION_MENU, BookingRules, DayHours
from .domain.operating_hours import WEEKDAY_NAMES, OperatingSchedule
from .domain.time_utils import DEFAULT_TIMEZONE, parse_hhmm, resolve_timezone


class BookingConfig(BaseModel):
    """Booking constraints applied when computing availability."""
    granularity_minutes: int = 5
    buffer_minutes: int = 5
    min_duration_minutes: int = 30
    max_duration_minutes: int = 480
    duration_menu: List[int] = Field(default_factory=lambda: list(DEFAULT_DURATION_MENU))

    @field_validator("granularity_minutes", "min_duration_minutes", "max_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure minute values are positive."""
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("buffer_minutes must not be negative")
        return value

    @model_validator(mode="after")
    def validate_bounds(self) -> "BookingConfig":
        """Ensure the duration bounds are ordered and the menu respects them."""
        if self.max_duration_minutes < self.min_duration_minutes:
            raise ValueError("max_duration_minutes must not be below min_duration_minutes")
        outside = [
            d for d in self.duration_menu
            if not self.min_duration_minutes <= d <= self.max_duration_minutes
        ]
        if outside:
            raise ValueError(f"duration_menu entries outside the duration bounds: {outside}")
        return self

    def to_rules(self) -> BookingRules:
        return BookingRules(
            granularity_minutes=self.granularity_minutes,
            buffer_minutes=self.buffer_minutes,
            min_duration_minutes=self.min_duration_minutes,
            max_duration_minutes=self.max_duration_minutes,
            duration_menu=tuple(sorted(set(self.duration_menu))),
        )


class DayHoursConfig(BaseModel):
    """Operating hours for one weekday."""
    is_24_hours: bool = Field(default=False, alias="is24Hours")
    open: Optional[str] = None
    close: Optional[str] = None

    model_config = {"populate_by_name": True}

    @field_validator("open", "close")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        """Validate HH:MM format."""
        if value is None:
            return value
        try:
            parse_hhmm(value)
        except MalformedTimeError as exc:
            raise ValueError(str(exc)) from exc
        return value

    def to_day_hours(self) -> DayHours:
        return DayHours(is_24_hours=self.is_24_hours, open=self.open, close=self.close)


class PortConfig(BaseModel):
    """A charging port of a station."""
    id: str
    number: int = 1
    connector_type: str = ""
    power_kw: Optional[float] = None
    is_operational: bool = True

    def display_name(self) -> str:
        """Get display name."""
        label = f"Port {self.number}"
        if self.connector_type:
            label += f" ({self.connector_type})"
        return label


class StationConfig(BaseModel):
    """Charging station configuration."""
    id: str
    name: str = ""
    operating_hours: Dict[str, DayHoursConfig] = Field(default_factory=dict)
    missing_day_policy: str = "open"
    ports: List[PortConfig] = Field(default_factory=list)

    @field_validator("operating_hours")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, DayHoursConfig]) -> Dict[str, DayHoursConfig]:
        """Ensure weekday keys are known names, normalized to lowercase."""
        normalized: Dict[str, DayHoursConfig] = {}
        for name, hours in value.items():
            key = name.lower()
            if key not in WEEKDAY_NAMES:
                raise ValueError(f"Unknown weekday in operating_hours: {name}")
            normalized[key] = hours
        return normalized

    @field_validator("missing_day_policy")
    @classmethod
    def validate_policy(cls, value: str) -> str:
        if value not in ("open", "closed"):
            raise ValueError("missing_day_policy must be 'open' or 'closed'")
        return value

    @field_validator("ports")
    @classmethod
    def validate_ports(cls, value: List[PortConfig]) -> List[PortConfig]:
        """Ensure port ids are unique."""
        seen: set[str] = set()
        for port in value:
            if port.id in seen:
                raise ValueError(f"Duplicate port id detected: {port.id}")
            seen.add(port.id)
        return value

    def display_name(self) -> str:
        return self.name or self.id

    def schedule(self) -> OperatingSchedule:
        """Build the weekly operating schedule for this station."""
        days = {name: hours.to_day_hours() for name, hours in self.operating_hours.items()}
        if self.missing_day_policy == "closed":
            return OperatingSchedule(days, fallback=None)
        return OperatingSchedule(days)

    def find_port(self, port_id: str) -> PortConfig:
        for port in self.ports:
            if port.id == port_id:
                return port
        raise UnknownPortError(f"Unknown port '{port_id}' for station '{self.id}'")

    def operational_ports(self) -> List[PortConfig]:
        return [port for port in self.ports if port.is_operational]


class ApiConfig(BaseModel):
    """Reservation API connection settings."""
    base_url: str = "http://localhost:5000/api"
    token: Optional[str] = None
    timeout_seconds: float = 30.0


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = DEFAULT_TIMEZONE
    booking: BookingConfig = Field(default_factory=BookingConfig)
    cache_ttl_seconds: int = 120
    api: ApiConfig = Field(default_factory=ApiConfig)
    mock_data_file: Optional[Path] = None
    stations: List[StationConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        resolve_timezone(value)
        return value

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        if value < 0:
            raise ValueError("cache_ttl_seconds must not be negative")
        return value

    @field_validator("stations")
    @classmethod
    def validate_stations(cls, value: List[StationConfig]) -> List[StationConfig]:
        """Ensure station ids are unique."""
        seen: set[str] = set()
        for station in value:
            if station.id in seen:
                raise ValueError(f"Duplicate station id detected: {station.id}")
            seen.add(station.id)
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

        config = cls(**data)
        # Relative mock data paths are resolved against the config file location
        if config.mock_data_file and not config.mock_data_file.is_absolute():
            config.mock_data_file = config_path.parent / config.mock_data_file
        return config

    def find_station(self, station_id: str) -> StationConfig:
        """Find a station by id (case-insensitive)."""
        for station in self.stations:
            if station.id.lower() == station_id.lower():
                return station
        raise UnknownStationError(
            f"Unknown station: '{station_id}'. Use one of the configured station ids."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of chargeslot/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
