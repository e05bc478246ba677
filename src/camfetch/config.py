"""
camfetch configuration (environment + .env).

FetchSettings is the mutable, user-facing layer loaded by pydantic-settings.
RunParameters is the frozen view handed to the orchestration core; the global
deadline is resolved into an absolute instant once, at startup.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _as_aware(value: datetime | None) -> datetime | None:
    """Interpret naive datetimes as local time."""
    if value is None or value.tzinfo is not None:
        return value
    return value.astimezone()


class FetchSettings(BaseSettings):
    """Settings for a download or reboot run."""

    model_config = SettingsConfigDict(
        env_prefix="CAMFETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cloud account
    cloud_url: str = Field(default="")
    cloud_user: str = Field(default="")
    cloud_password: str = Field(default="")

    # Device API adapter ("package.module:factory")
    device_api: str = Field(default="")

    # Connection
    max_connect_retries: int = Field(default=5, ge=1, le=50)
    initial_connect_delay: float = Field(default=5.0, ge=0.0, le=600.0)
    max_connect_time: float = Field(default=300.0, ge=1.0)

    # Admission
    max_cameras_at_once: int = Field(default=10, ge=1, le=1000)
    admission_poll_interval: float = Field(default=10.0, gt=0.0, le=60.0)
    parallelism_floor: int = Field(default=10, ge=1)

    # Transfers
    file_timeout: float = Field(default=600.0, ge=1.0)
    no_progress_timeout: float = Field(default=120.0, ge=1.0)
    poll_interval: float = Field(default=1.0, gt=0.0, le=10.0)
    empty_result_is_fatal: bool = Field(default=True)

    # Global deadline: explicit instant wins over the relative budget
    process_deadline: datetime | None = Field(default=None)
    max_process_minutes: float = Field(default=240.0, gt=0.0)

    # Storage
    recordings_folder: Path = Field(default=Path("recordings"))
    sdk_logs_folder: Path = Field(default=Path("sdk_logs"))
    ledger_path: Path = Field(default=Path("FailedCameras.txt"))
    plan_file: Path | None = Field(default=None)

    # Device API tuning
    sdk_connect_wait: int = Field(default=30, ge=1)
    sdk_connect_tries: int = Field(default=3, ge=1)
    sdk_receive_timeout: int = Field(default=10, ge=1)
    sdk_file_report_timeout: int = Field(default=60, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    log_file: Path | None = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {v}")
        return level

    @field_validator("process_deadline")
    @classmethod
    def validate_deadline(cls, v: datetime | None) -> datetime | None:
        return _as_aware(v)

    def validate_for_download(self) -> None:
        """
        Check cross-field requirements of a run.

        Raises ValueError listing every problem.
        """
        errors: list[str] = []

        if not self.cloud_url:
            errors.append("cloud_url is required")
        if not self.cloud_user:
            errors.append("cloud_user is required")
        if not self.device_api:
            errors.append("device_api is required (package.module:factory)")
        if not str(self.recordings_folder):
            errors.append("recordings_folder is empty")
        if self.no_progress_timeout > self.file_timeout:
            errors.append(
                "no_progress_timeout must not exceed file_timeout "
                f"({self.no_progress_timeout:g} > {self.file_timeout:g})"
            )

        if errors:
            raise ValueError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


class SdkOptions(BaseModel):
    """Process-wide Device API options, applied once before any login."""

    model_config = ConfigDict(frozen=True)

    log_path: Path
    connect_wait_seconds: int = 30
    connect_tries: int = 3
    receive_timeout_seconds: int = 10
    file_report_timeout_seconds: int = 60


class RunParameters(BaseModel):
    """Read-only parameters consumed by the orchestration core."""

    model_config = ConfigDict(frozen=True)

    max_connect_retries: int = Field(default=5, ge=1)
    initial_connect_delay: float = Field(default=5.0, ge=0.0)
    max_connect_time: float = Field(default=300.0, gt=0.0)
    max_cameras_at_once: int = Field(default=10, ge=1)
    admission_poll_interval: float = Field(default=10.0, gt=0.0)
    parallelism_floor: int = Field(default=10, ge=1)
    file_timeout: float = Field(default=600.0, gt=0.0)
    no_progress_timeout: float = Field(default=120.0, gt=0.0)
    poll_interval: float = Field(default=1.0, gt=0.0)
    empty_result_is_fatal: bool = True
    deadline: datetime
    output_root: Path

    @field_validator("deadline")
    @classmethod
    def validate_deadline(cls, v: datetime) -> datetime:
        return _as_aware(v)

    @classmethod
    def from_settings(
        cls,
        settings: FetchSettings,
        started_at: datetime | None = None,
    ) -> RunParameters:
        started_at = started_at or datetime.now(timezone.utc)
        deadline = settings.process_deadline or (
            started_at + timedelta(minutes=settings.max_process_minutes)
        )
        return cls(
            max_connect_retries=settings.max_connect_retries,
            initial_connect_delay=settings.initial_connect_delay,
            max_connect_time=settings.max_connect_time,
            max_cameras_at_once=settings.max_cameras_at_once,
            admission_poll_interval=settings.admission_poll_interval,
            parallelism_floor=settings.parallelism_floor,
            file_timeout=settings.file_timeout,
            no_progress_timeout=settings.no_progress_timeout,
            poll_interval=settings.poll_interval,
            empty_result_is_fatal=settings.empty_result_is_fatal,
            deadline=deadline,
            output_root=settings.recordings_folder,
        )


def sdk_options_from_settings(settings: FetchSettings) -> SdkOptions:
    return SdkOptions(
        log_path=settings.sdk_logs_folder,
        connect_wait_seconds=settings.sdk_connect_wait,
        connect_tries=settings.sdk_connect_tries,
        receive_timeout_seconds=settings.sdk_receive_timeout,
        file_report_timeout_seconds=settings.sdk_file_report_timeout,
    )


# =============================================================================
# Singleton
# =============================================================================

_settings: FetchSettings | None = None


def get_settings() -> FetchSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = FetchSettings()
    return _settings


def configure_settings(**overrides) -> FetchSettings:
    """Replace the process-wide settings with env values plus overrides."""
    global _settings
    _settings = FetchSettings(**overrides)
    return _settings


def reset_settings() -> None:
    """Drop cached settings (next get_settings() reloads)."""
    global _settings
    _settings = None


__all__ = [
    "FetchSettings",
    "RunParameters",
    "SdkOptions",
    "sdk_options_from_settings",
    "get_settings",
    "configure_settings",
    "reset_settings",
]
