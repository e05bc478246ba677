"""
Pytest configuration and fixtures for camfetch tests.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest

from camfetch.clock import Clock
from camfetch.config import RunParameters, SdkOptions
from camfetch.exceptions import DeviceError
from camfetch.models import CameraTarget, Channel, ChannelStatus, CloudDevice, FoundFile, Interval

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Virtual time: sleep() advances the clock instead of waiting."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.t = 0.0
        self.base = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.t

    def now(self) -> datetime:
        return self.base + timedelta(seconds=self.t)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.t += seconds


@dataclass
class FakeHandle:
    camera: str
    serial: int = 0


@dataclass
class FakeTransfer:
    camera: str
    channel_id: int
    start: int
    end: int
    local_path: Path
    polls: int = 0
    stopped: bool = False


@dataclass
class FakeDeviceAPI:
    """
    Scriptable in-memory Device API.

    Transfers advance by `step` seconds of media per poll unless
    `position_fn` is set. open_transfer() creates the bare target file the
    way the native SDK does.
    """

    devices: list[CloudDevice] = field(default_factory=list)
    channels: dict[str, list[Channel]] = field(default_factory=dict)
    files: dict[tuple[str, int], list[FoundFile]] = field(default_factory=dict)
    step: int = 10

    # Failure scripting
    fail_cloud_login: bool = False
    fail_list_devices: bool = False
    login_failures: dict[str, int] = field(default_factory=dict)
    channel_failures: dict[str, int] = field(default_factory=dict)
    fail_find: set[str] = field(default_factory=set)
    fail_open: set[int] = field(default_factory=set)
    fail_reboot: set[str] = field(default_factory=set)
    position_fn: Callable[[FakeTransfer], int] | None = None

    # Recorded interactions
    initialized_with: SdkOptions | None = None
    cleaned_up: int = 0
    calls: list[tuple] = field(default_factory=list)
    logouts: list[object] = field(default_factory=list)
    stops: list[FakeTransfer] = field(default_factory=list)
    reboots: list[str] = field(default_factory=list)
    last_error_code: int = 0
    _serial: int = 0

    def add_camera(
        self,
        name: str,
        channels: list[Channel] | None = None,
        ip_address: str = "10.0.0.1",
    ) -> CloudDevice:
        device = CloudDevice(name=name, ip_address=ip_address, user_name="admin")
        self.devices.append(device)
        self.channels[name] = channels if channels is not None else [
            Channel(id=1, status=ChannelStatus.ONLINE)
        ]
        return device

    def add_file(self, camera: str, channel_id: int, start: int, length: int = 600) -> FoundFile:
        found = FoundFile(name=f"{camera}-{start}", start=start, end=start + length)
        self.files.setdefault((camera, channel_id), []).append(found)
        return found

    def make_handle(self, camera: str) -> FakeHandle:
        self._serial += 1
        return FakeHandle(camera, self._serial)

    def calls_of(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def initialize(self, options: SdkOptions) -> None:
        self.initialized_with = options

    async def cleanup(self) -> None:
        self.cleaned_up += 1

    def last_error(self) -> int:
        return self.last_error_code

    async def login(self, server_url: str, user: str, password: str) -> str:
        self.calls.append(("login", server_url, user))
        if self.fail_cloud_login:
            raise DeviceError("login", 101)
        return "root"

    async def logout(self, handle) -> None:
        self.logouts.append(handle)

    async def list_devices(self, root) -> list[CloudDevice]:
        if self.fail_list_devices:
            raise DeviceError("list_devices", 7)
        return list(self.devices)

    async def login_device(self, root, device: CloudDevice) -> FakeHandle:
        self.calls.append(("login_device", device.name))
        remaining = self.login_failures.get(device.name, 0)
        if remaining:
            self.login_failures[device.name] = remaining - 1
            self.last_error_code = 201
            raise DeviceError("login_device", 201)
        return self.make_handle(device.name)

    async def list_channels(self, device: FakeHandle) -> list[Channel]:
        remaining = self.channel_failures.get(device.camera, 0)
        if remaining:
            self.channel_failures[device.camera] = remaining - 1
            raise DeviceError("list_channels", 301)
        return list(self.channels.get(device.camera, []))

    async def find_files(self, device: FakeHandle, channel_id: int, start: int, end: int) -> list[FoundFile]:
        self.calls.append(("find_files", device.camera, channel_id, start, end))
        if device.camera in self.fail_find:
            raise DeviceError("find_files", 401)
        return [
            f for f in self.files.get((device.camera, channel_id), [])
            if f.start < end and f.end > start
        ]

    async def open_transfer(
        self,
        device: FakeHandle,
        channel_id: int,
        start: int,
        end: int,
        local_path: Path,
    ) -> FakeTransfer:
        self.calls.append(("open_transfer", device.camera, channel_id, start, end))
        if start in self.fail_open:
            raise DeviceError("open_transfer", 501)
        Path(local_path).write_bytes(b"")
        return FakeTransfer(device.camera, channel_id, start, end, Path(local_path))

    async def poll_position(self, transfer: FakeTransfer) -> int:
        transfer.polls += 1
        if self.position_fn is not None:
            return self.position_fn(transfer)
        position = transfer.start + self.step * transfer.polls
        with open(transfer.local_path, "ab") as f:
            f.write(b"x")
        return min(position, transfer.end)

    async def stop_transfer(self, transfer: FakeTransfer) -> None:
        transfer.stopped = True
        self.stops.append(transfer)

    async def reboot(self, device: FakeHandle) -> None:
        if device.camera in self.fail_reboot:
            raise DeviceError("reboot", 601)
        self.reboots.append(device.camera)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Virtual clock starting at BASE_TIME."""
    return FakeClock()


@pytest.fixture
def fake_api() -> FakeDeviceAPI:
    """Empty fake Device API."""
    return FakeDeviceAPI()


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    return tmp_path / "recordings"


@pytest.fixture
def params(output_root: Path) -> RunParameters:
    """Run parameters with a far-away deadline."""
    return RunParameters(
        max_connect_retries=5,
        initial_connect_delay=5.0,
        max_connect_time=300.0,
        max_cameras_at_once=10,
        admission_poll_interval=0.05,
        parallelism_floor=10,
        file_timeout=600.0,
        no_progress_timeout=120.0,
        poll_interval=1.0,
        deadline=BASE_TIME + timedelta(days=1),
        output_root=output_root,
    )


@pytest.fixture
def window() -> Interval:
    """One hour starting at BASE_TIME."""
    return Interval(start=BASE_TIME, end=BASE_TIME + timedelta(hours=1))


@pytest.fixture
def window_start(window: Interval) -> int:
    return window.start_epoch


@pytest.fixture
def make_target(window: Interval):
    """Factory: CameraTarget for a device, scanning the default window."""

    def _make(device: CloudDevice, intervals: list[Interval] | None = None) -> CameraTarget:
        return CameraTarget(device=device, intervals=intervals if intervals is not None else [window])

    return _make


@pytest.fixture
def reset_fetch_settings():
    """Reset settings singleton before and after test."""
    from camfetch.config import reset_settings

    reset_settings()
    yield
    reset_settings()
