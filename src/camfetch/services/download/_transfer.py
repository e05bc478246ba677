"""
Per-file download state machine.

IDLE -> POLLING -> COMPLETED | FAILED | TIMED_OUT | STALLED | DEADLINE

The Device API writes the media bytes itself once a transfer is opened; this
module only watches the reported position once per poll interval and decides
when to stop. Three independent abort policies apply, checked in order:

1. per-file timeout (counted poll seconds or wall time since start)
2. stall watchdog (no strictly increasing progress for no_progress_timeout)
3. global process deadline
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from camfetch.clock import Clock
from camfetch.exceptions import (
    DeviceError,
    FileTimeoutError,
    FileTransferError,
    GlobalDeadlineError,
    PollError,
    StallTimeoutError,
    TransferOpenError,
)
from camfetch.logging import get_logger
from camfetch.services.download._config import END_TOLERANCE_SECONDS, MAX_POLL_ERRORS
from camfetch.services.download._models import FileRecord, FileResult, TransferState

if TYPE_CHECKING:
    from datetime import datetime

    from camfetch.config import RunParameters
    from camfetch.device.base import DeviceAPI
    from camfetch.services.connection import DeviceSession

logger = get_logger(__name__)


def deadline_reached(clock: Clock, deadline: datetime) -> bool:
    return clock.now() >= deadline


class FileTransfer:
    """Drives single files of one camera through the download state machine."""

    def __init__(
        self,
        api: DeviceAPI,
        session: DeviceSession,
        params: RunParameters,
        clock: Clock | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._api = api
        self._session = session
        self._params = params
        self._clock = clock or Clock()
        self._log = log or logger
        self._polls = 0

    async def download(self, record: FileRecord) -> FileResult:
        """
        Download one file.

        Never raises for file-level failures; they are reported in the
        returned FileResult so that sibling files keep going.
        """
        started = self._clock.monotonic()
        self._polls = 0
        name = record.target_name

        try:
            await self._open(record)
            await self._poll_until_done(record)
        except FileTransferError as e:
            record.state = TransferState(e.state)
            record.is_downloaded = False
            self._log.error(e.message)
            return FileResult(
                success=False,
                state=record.state,
                file_name=name,
                local_path=record.partial_path,
                polls=self._polls,
                elapsed_seconds=self._clock.monotonic() - started,
                error=e.message,
            )

        record.state = TransferState.COMPLETED
        elapsed = self._clock.monotonic() - started
        self._log.info(f"File {name} was downloaded in {record.download_seconds} seconds")
        return FileResult(
            success=True,
            state=record.state,
            file_name=name,
            local_path=record.partial_path,
            polls=self._polls,
            elapsed_seconds=elapsed,
        )

    async def _open(self, record: FileRecord) -> None:
        try:
            handle = await self._api.open_transfer(
                self._session.handle,
                record.channel_id,
                record.start,
                record.end,
                record.partial_path,
            )
        except DeviceError as e:
            raise TransferOpenError(record.target_name, e) from e

        record.transfer_handle = handle
        record.state = TransferState.POLLING
        self._log.debug(f"Starting download {record.target_name} on channel {record.channel_id}")

    async def _poll_until_done(self, record: FileRecord) -> None:
        params = self._params
        clock = self._clock
        name = record.target_name

        started = clock.monotonic()
        last_progress_at = started
        best_downloaded = 0
        poll_errors = 0
        logged_percent = 0

        while clock.monotonic() - started <= params.file_timeout:
            self._polls += 1
            try:
                position = await self._api.poll_position(record.transfer_handle)
            except DeviceError as e:
                poll_errors += 1
                self._log.debug(f"{name} progress query failed ({poll_errors}): {e}")
                if poll_errors > MAX_POLL_ERRORS:
                    await self._stop_quietly(record)
                    raise PollError(name, poll_errors) from e
            else:
                poll_errors = 0
                record.current_position = position
                record.downloaded_seconds = record.length_seconds - (record.end - position)

                if record.downloaded_seconds > best_downloaded:
                    best_downloaded = record.downloaded_seconds
                    last_progress_at = clock.monotonic()

                if position + END_TOLERANCE_SECONDS >= record.end:
                    try:
                        await self._api.stop_transfer(record.transfer_handle)
                    except DeviceError as e:
                        self._log.warning(f"{name} reached the end but stop failed: {e}")
                    else:
                        record.is_downloaded = True
                        return

            now = clock.monotonic()
            elapsed = now - started
            if record.download_seconds > params.file_timeout or elapsed > params.file_timeout:
                await self._stop_quietly(record)
                raise FileTimeoutError(name, max(elapsed, record.download_seconds))

            stalled = now - last_progress_at
            if stalled > params.no_progress_timeout:
                await self._stop_quietly(record)
                raise StallTimeoutError(name, stalled)

            if deadline_reached(clock, params.deadline):
                await self._stop_quietly(record)
                raise GlobalDeadlineError(name)

            record.download_seconds += 1
            percent = record.percent
            if percent > logged_percent + 1:
                logged_percent = int(percent)
                self._log.debug(f"{name} - {logged_percent:03d}%")

            await clock.sleep(params.poll_interval)

        # Loop bound hit without an explicit abort firing
        await self._stop_quietly(record)
        raise FileTimeoutError(name, clock.monotonic() - started)

    async def _stop_quietly(self, record: FileRecord) -> None:
        try:
            await self._api.stop_transfer(record.transfer_handle)
        except DeviceError as e:
            self._log.warning(f"Stopping {record.target_name} failed: {e}")


__all__ = ["FileTransfer", "deadline_reached"]
