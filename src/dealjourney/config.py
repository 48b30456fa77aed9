"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DEALJOURNEY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Deal Journey API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied at startup.")
    data_root: Path = Field(default=Path("data"), description="Root directory for durable local storage.")
    vendors_file: Path = Field(
        default=Path("data/vendors.json"),
        description="Vendor directory used when the database is unavailable.",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    deals_table: str = "deals"
    vendors_table: str = "vendors"

    # Deal cache
    cache_expiration_hours: float = Field(default=24.0, gt=0)

    # Journeys
    journey_ttl_hours: float = Field(default=24.0, gt=0)
    journey_history_limit: int = Field(default=20, ge=1)
    points_per_stop: int = Field(default=10, ge=0)

    # Route planning
    default_max_vendors: int = Field(default=5, ge=1)
    max_stops: int = Field(default=10, ge=1)
    average_speed_mph: float = Field(default=25.0, gt=0)
    directions_traffic_factor: float = Field(
        default=1.2,
        ge=1.0,
        description="Buffer applied to single-leg direction estimates (not whole routes).",
    )

    # Location
    location_timeout_seconds: float = Field(default=10.0, gt=0)
    use_default_location: bool = Field(
        default=False,
        description="Fall back to the default coordinates when no last-known location exists.",
    )
    default_latitude: float = Field(default=61.2181, ge=-90, le=90)
    default_longitude: float = Field(default=-149.9003, ge=-180, le=180)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:8081",
            "http://127.0.0.1:8081",
            "http://localhost:19006",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", "vendors_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
