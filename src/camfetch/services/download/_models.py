"""
Models for camera downloads.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from camfetch.models import FoundFile
from camfetch.services.download._config import MEDIA_EXTENSION, TARGET_DATE_FORMAT


class TransferState(str, Enum):
    """Per-file download state."""

    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    STALLED = "stalled"
    DEADLINE = "deadline"


class FileRecord(BaseModel):
    """One recording segment and its transfer progress."""

    model_config = {"arbitrary_types_allowed": True}

    device_file_name: str = ""
    channel_id: int
    start: int
    end: int

    # Target
    target_dir: Path
    target_name: str
    target_extension: str = MEDIA_EXTENSION

    # Progress
    current_position: int = 0
    downloaded_seconds: int = 0
    download_seconds: int = 0
    is_downloaded: bool = False
    transfer_handle: Any = None
    state: TransferState = TransferState.IDLE

    @model_validator(mode="after")
    def _check_range(self) -> FileRecord:
        if self.end <= self.start:
            raise ValueError(f"file end {self.end} must be after start {self.start}")
        return self

    @classmethod
    def from_found(
        cls,
        found: FoundFile,
        channel_id: int,
        output_root: Path,
        camera: str,
    ) -> FileRecord:
        """Derive target folder and names for a discovered file."""
        return cls(
            device_file_name=found.name,
            channel_id=channel_id,
            start=found.start,
            end=found.end,
            target_dir=Path(output_root) / camera,
            target_name=target_base_name(found.start, found.end),
        )

    @property
    def length_seconds(self) -> int:
        return self.end - self.start

    @property
    def partial_path(self) -> Path:
        """Bare name handed to the Device API; marks an unfinished transfer."""
        return self.target_dir / self.target_name

    @property
    def completed_path(self) -> Path:
        return self.target_dir / f"{self.target_name}{self.target_extension}"

    @property
    def percent(self) -> float:
        if self.length_seconds <= 0:
            return 0.0
        return 100.0 * self.downloaded_seconds / self.length_seconds

    def already_present(self) -> Path | None:
        """Existing bare or extensioned target, if any."""
        for path in (self.partial_path, self.completed_path):
            if path.exists():
                return path
        return None


def target_base_name(start: int, end: int) -> str:
    """{yyyymmdd}_{startEpoch}_{endEpoch}, date taken in UTC."""
    day = datetime.fromtimestamp(start, tz=timezone.utc).strftime(TARGET_DATE_FORMAT)
    return f"{day}_{start}_{end}"


class FileResult(BaseModel):
    """Outcome of one file's download state machine."""

    model_config = {"arbitrary_types_allowed": True}

    success: bool
    state: TransferState
    file_name: str
    local_path: Path | None = None
    polls: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None

    def __repr__(self) -> str:
        if self.success:
            return f"FileResult(ok, {self.file_name}, {self.elapsed_seconds:.0f}s)"
        return f"FileResult({self.state.value}: {self.error})"

    def __str__(self) -> str:
        if self.success:
            return f"{self.file_name} downloaded in {self.elapsed_seconds:.0f}s"
        return f"Failed ({self.state.value}): {self.error}"


class CameraReport(BaseModel):
    """Per-camera summary of one run."""

    camera: str
    mode: str = "download"
    success: bool = False
    admitted: bool = False
    channels: int = 0
    files_found: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    truncated: bool = False
    error: str | None = None

    def summary(self) -> str:
        if self.mode == "reboot":
            return f"{self.camera}: rebooted" if self.success else f"{self.camera}: {self.error}"
        parts = [
            f"{self.camera}: found {self.files_found}",
            f"downloaded {self.downloaded}",
            f"skipped {self.skipped}",
            f"failed {self.failed}",
        ]
        line = ", ".join(parts)
        if self.truncated:
            line += " (stopped by global timeout)"
        if self.error:
            line += f" - {self.error}"
        return line


class RunSummary(BaseModel):
    """Result of a whole orchestrator run."""

    mode: str = "download"
    cloud_connected: bool = False
    cameras_selected: int = 0
    reports: list[CameraReport] = Field(default_factory=list)
    error: str | None = None

    @property
    def successful_cameras(self) -> list[str]:
        return [r.camera for r in self.reports if r.success]

    @property
    def failed_cameras(self) -> list[str]:
        return [r.camera for r in self.reports if not r.success]

    @property
    def total_downloaded(self) -> int:
        return sum(r.downloaded for r in self.reports)

    @property
    def total_failed_files(self) -> int:
        return sum(r.failed for r in self.reports)

    @property
    def ok(self) -> bool:
        return self.cloud_connected and self.error is None and not self.failed_cameras

    def summary(self) -> str:
        lines = [r.summary() for r in self.reports]
        lines.append(
            f"Processed {len(self.successful_cameras)} of {self.cameras_selected} camera(s)"
        )
        if self.error:
            lines.append(f"Error: {self.error}")
        return "\n".join(lines)
