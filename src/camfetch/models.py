"""
Domain models shared by the Device API adapter and the orchestration core.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Interval(BaseModel):
    """A time window to scan for recordings.

    start < end is not enforced here; the transfer engine skips invalid
    windows with a logged error instead of rejecting the whole plan.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def start_epoch(self) -> int:
        return int(self.start.timestamp())

    @property
    def end_epoch(self) -> int:
        return int(self.end.timestamp())

    def __str__(self) -> str:
        return f"{self.start:%Y-%m-%d %H:%M:%S} - {self.end:%Y-%m-%d %H:%M:%S}"


class ChannelStatus:
    """Channel status codes reported by the Device API."""

    OFFLINE = 0
    ONLINE = 1


class Channel(BaseModel):
    """A numbered, camera-local video source."""

    model_config = ConfigDict(frozen=True)

    id: int
    status: int = ChannelStatus.OFFLINE

    @property
    def online(self) -> bool:
        return self.status == ChannelStatus.ONLINE


class CloudDevice(BaseModel):
    """A device as listed by the cloud account."""

    model_config = {"arbitrary_types_allowed": True}

    name: str
    ip_address: str = ""
    user_name: str = ""
    # Adapter-specific payload needed to log in to this device
    native: Any = None


class FoundFile(BaseModel):
    """A recording segment reported by file search."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    start: int
    end: int


class CameraTarget(BaseModel):
    """A fleet device selected for processing, with its intervals."""

    model_config = {"arbitrary_types_allowed": True}

    device: CloudDevice
    intervals: list[Interval] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.device.name

    @property
    def address(self) -> str:
        return self.device.ip_address


__all__ = [
    "Interval",
    "ChannelStatus",
    "Channel",
    "CloudDevice",
    "FoundFile",
    "CameraTarget",
]
