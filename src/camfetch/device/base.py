"""
Device API adapter interface.

The native camera SDK is an external collaborator. The orchestration core
only talks to it through this protocol; every failed primitive raises
DeviceError with the SDK's last error code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from camfetch.config import SdkOptions
from camfetch.models import Channel, CloudDevice, FoundFile

# Opaque handles owned by the adapter
RootSession = Any
DeviceHandle = Any
TransferHandle = Any


@runtime_checkable
class DeviceAPI(Protocol):
    """Async facade over a cloud-brokered camera SDK."""

    async def initialize(self, options: SdkOptions) -> None:
        """Process-wide SDK setup, called once before any login."""
        ...

    async def cleanup(self) -> None:
        """Release process-wide SDK resources."""
        ...

    def last_error(self) -> int:
        """Error code of the most recent failed call."""
        ...

    async def login(self, server_url: str, user: str, password: str) -> RootSession:
        ...

    async def logout(self, handle: RootSession | DeviceHandle) -> None:
        ...

    async def list_devices(self, root: RootSession) -> list[CloudDevice]:
        ...

    async def login_device(self, root: RootSession, device: CloudDevice) -> DeviceHandle:
        ...

    async def list_channels(self, device: DeviceHandle) -> list[Channel]:
        ...

    async def find_files(
        self,
        device: DeviceHandle,
        channel_id: int,
        start: int,
        end: int,
    ) -> list[FoundFile]:
        """Search recordings in [start, end) epoch seconds on one channel."""
        ...

    async def open_transfer(
        self,
        device: DeviceHandle,
        channel_id: int,
        start: int,
        end: int,
        local_path: Path,
    ) -> TransferHandle:
        """Start writing the recording range to local_path."""
        ...

    async def poll_position(self, transfer: TransferHandle) -> int:
        """Current transfer position in epoch seconds."""
        ...

    async def stop_transfer(self, transfer: TransferHandle) -> None:
        ...

    async def reboot(self, device: DeviceHandle) -> None:
        ...


__all__ = ["DeviceAPI", "RootSession", "DeviceHandle", "TransferHandle"]
