"""
Connection manager: per-camera device login with bounded retry.

Every attempt is preceded by the admission soft pre-check. Attempts stop at
the first success, after max_connect_retries failures, or when the connect
deadline has elapsed. Retry delays grow in steps, not exponentially.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from camfetch.clock import Clock
from camfetch.exceptions import ConnectError, ConnectTimeoutError, DeviceError
from camfetch.logging import camera_logger, get_logger
from camfetch.models import CameraTarget, Channel

if TYPE_CHECKING:
    from camfetch.config import RunParameters
    from camfetch.device.base import DeviceAPI, DeviceHandle, RootSession
    from camfetch.services.admission import AdmissionController

logger = get_logger(__name__)


def backoff_delay(attempt: int, initial_delay: float) -> float:
    """
    Delay to wait before a 1-based attempt.

    initial_delay * ceil(attempt / 3): attempts 2-3 wait one step,
    4-6 two steps, 7-9 three steps, and so on. The first attempt never waits.
    """
    if attempt <= 1:
        return 0.0
    return initial_delay * math.ceil(attempt / 3)


class DeviceSession:
    """
    Exclusively owned device session handle.

    Logs out exactly once, whichever path closes it first.

    Example:
        >>> async with await manager.connect(target) as session:
        ...     for channel in session.channels:
        ...         ...
    """

    def __init__(
        self,
        api: DeviceAPI,
        handle: DeviceHandle,
        camera: str,
        channels: list[Channel],
    ) -> None:
        self._api = api
        self._handle = handle
        self._camera = camera
        self._channels = channels
        self._closed = False

    @property
    def camera(self) -> str:
        return self._camera

    @property
    def handle(self) -> DeviceHandle:
        if self._closed:
            raise RuntimeError(f"Device session for {self._camera} is closed")
        return self._handle

    @property
    def channels(self) -> list[Channel]:
        """Online channels, in discovery order."""
        return list(self._channels)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> bool:
        """Log out. Returns False if already closed."""
        if self._closed:
            return False
        self._closed = True
        try:
            await self._api.logout(self._handle)
            logger.debug(f"[{self._camera}] Device session closed")
        except DeviceError as e:
            logger.warning(f"[{self._camera}] Logout failed: {e}")
        return True

    async def __aenter__(self) -> DeviceSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class ConnectionManager:
    """Establishes device sessions for cameras of one cloud account."""

    def __init__(
        self,
        api: DeviceAPI,
        root: RootSession,
        admission: AdmissionController,
        params: RunParameters,
        clock: Clock | None = None,
    ) -> None:
        self._api = api
        self._root = root
        self._admission = admission
        self._params = params
        self._clock = clock or Clock()

    async def connect(self, target: CameraTarget) -> DeviceSession:
        """
        Log in to the camera and enumerate its online channels.

        Raises:
            ConnectTimeoutError: Connect deadline elapsed.
            ConnectError: All attempts failed.
        """
        name = target.name
        log = camera_logger(logger, name)
        max_retries = self._params.max_connect_retries
        max_time = self._params.max_connect_time
        started = self._clock.monotonic()
        last_error: DeviceError | None = None

        for attempt in range(1, max_retries + 1):
            if attempt > 1:
                delay = backoff_delay(attempt, self._params.initial_connect_delay)
                log.debug(f"Retrying in {delay:g} seconds...")
                await self._clock.sleep(delay)

            if self._clock.monotonic() - started > max_time:
                log.error(f"Exceeded maximum connection time of {max_time:g} seconds")
                raise ConnectTimeoutError(name, attempt - 1, max_time)

            # Time blocked at the camera cap is not part of the connect budget
            blocked_at = self._clock.monotonic()
            await self._admission.wait_for_capacity(name)
            started += self._clock.monotonic() - blocked_at

            log.debug(f"Attempt {attempt}: trying to connect to {name} at IP {target.address}")

            try:
                handle = await self._api.login_device(self._root, target.device)
            except DeviceError as e:
                last_error = e
                await self._admission.release(name)
                log.error(
                    f"Login at IP {target.address} attempt {attempt} failed, "
                    f"the error is {self._api.last_error()}: {e}"
                )
                continue

            try:
                channels = await self._api.list_channels(handle)
            except DeviceError as e:
                last_error = e
                log.error(f"Unable to get list of channels: {e}")
                await self._logout_quietly(handle, name)
                continue

            log.debug(f"Channels available: {len(channels)}")
            online = [c for c in channels if c.online]
            for channel in channels:
                log.debug(f"Channel {channel.id} status {channel.status}")

            log.info(
                f"Connected at IP {target.address} attempt {attempt}, "
                f"{self._admission.active_count} of {self._admission.cap} active, "
                f"online channels {len(online)}"
            )
            return DeviceSession(self._api, handle, name, online)

        raise ConnectError(name, max_retries, cause=last_error)

    async def _logout_quietly(self, handle: DeviceHandle, name: str) -> None:
        try:
            await self._api.logout(handle)
        except DeviceError as e:
            logger.warning(f"[{name}] Logout after failed enumeration failed: {e}")


__all__ = ["ConnectionManager", "DeviceSession", "backoff_delay"]
