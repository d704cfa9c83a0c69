# backend/studio/core/config.py
import logging
import os
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
    )

    # Database
    database_url: str = Field(
        default="sqlite+pysqlite:///./studio.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL for the booking store",
    )
    database_echo: bool = False

    # Studio
    studio_name: str = "Ceramic Studio"
    studio_timezone: str = Field(
        default="America/Guayaquil",
        alias="STUDIO_TIMEZONE",
        description="Single studio timezone used for slot datetimes and lead-time math",
    )

    # Reschedule policy
    reschedule_lead_time_hours: int = Field(
        default=72,
        ge=0,
        description="Minimum hours before the source slot for a reschedule without admin approval",
    )
    no_refund_window_hours: int = Field(
        default=48,
        ge=0,
        description="Bookings made inside this window are accepted without refunds",
    )

    # Recurring session generation horizons
    recurring_horizon_days_ui: int = Field(default=90, ge=1, le=366)
    recurring_horizon_days_availability: int = Field(default=30, ge=1, le=366)
    monthly_booking_weeks: int = Field(default=4, ge=1, le=12)

    # Capacity defaults (per technique, then global fallback)
    default_capacity_potters_wheel: int = Field(default=8, ge=0)
    default_capacity_hand_modeling: int = Field(default=22, ge=0)
    default_capacity_painting: int = Field(default=22, ge=0)
    global_fallback_capacity: int = Field(
        default=1,
        ge=0,
        description="Capacity for ad-hoc slots with no clear technique",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("studio_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown studio timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _check_horizons(self) -> "Settings":
        if self.recurring_horizon_days_availability > self.recurring_horizon_days_ui:
            logger.warning(
                "[CONFIG] Availability horizon (%s days) exceeds UI horizon (%s days)",
                self.recurring_horizon_days_availability,
                self.recurring_horizon_days_ui,
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}

    @property
    def tz(self) -> pytz.BaseTzInfo:
        """Studio timezone as a pytz timezone object."""
        return pytz.timezone(self.studio_timezone)


settings = Settings()
