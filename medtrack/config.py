"""Centralized configuration loaded from environment variables."""

from __future__ import annotations

import datetime as dt
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = ("local", "remote")


class Settings(BaseSettings):
    """Application-wide settings sourced from .env / environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────────────
    medtrack_env: str = "development"
    medtrack_log_level: str = "INFO"
    medtrack_timezone: str = ""

    # ── API Server ───────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # ── Storage ──────────────────────────────────────────────────────
    storage_backend: str = "local"
    database_url: str = "sqlite+aiosqlite:///data/medtrack.db"
    remote_store_url: str = ""
    remote_store_token: str = ""
    remote_store_timeout: float = 15.0
    default_case_id: str = "local"
    attachments_dir: str = "data/attachments"

    # ── Calendar export ──────────────────────────────────────────────
    ics_default_duration_minutes: int = 30
    ics_alarm_minutes: str = "1440,60"
    ics_uid_domain: str = "control-onco-papa"
    ics_prodid: str = "-//Control Onco Papa//ES"

    @field_validator("storage_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {', '.join(STORAGE_BACKENDS)}")
        return value

    @field_validator("ics_default_duration_minutes")
    @classmethod
    def _check_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("ics_default_duration_minutes must be positive")
        return value

    # ── Derived ──────────────────────────────────────────────────────
    @property
    def is_remote(self) -> bool:
        return self.storage_backend == "remote"

    @property
    def alarm_minutes_before(self) -> list[int]:
        """Parse comma-separated reminder offsets (minutes before start)."""
        if not self.ics_alarm_minutes:
            return []
        return [int(m.strip()) for m in self.ics_alarm_minutes.split(",") if m.strip()]

    @property
    def tzinfo(self) -> Optional[dt.tzinfo]:
        """Zone used to localize timezone-aware timestamps, None for the host zone."""
        if not self.medtrack_timezone:
            return None
        return ZoneInfo(self.medtrack_timezone)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
