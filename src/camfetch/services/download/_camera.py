"""
Per-camera transfer engine and reboot path.

Everything inside one camera is sequential: channels in discovery order,
then configured intervals, then files in search order, one file at a time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from camfetch.clock import Clock
from camfetch.exceptions import (
    AdmissionDeniedError,
    CameraError,
    ConnectError,
    DeviceError,
    EmptyResultError,
    EnumerationError,
    FilesystemCleanupError,
    RebootError,
)
from camfetch.logging import camera_logger, get_logger
from camfetch.models import CameraTarget, Interval
from camfetch.services.download._models import CameraReport, FileRecord
from camfetch.services.download._transfer import FileTransfer, deadline_reached

if TYPE_CHECKING:
    from camfetch.config import RunParameters
    from camfetch.device.base import DeviceAPI
    from camfetch.services.admission import AdmissionController
    from camfetch.services.connection import ConnectionManager, DeviceSession

logger = get_logger(__name__)


class CameraDownloader:
    """
    Downloads every missing recording of one camera.

    Example:
        >>> downloader = CameraDownloader(target, api, connections, admission, params)
        >>> report = await downloader.download()
        >>> print(report.summary())
    """

    def __init__(
        self,
        target: CameraTarget,
        api: DeviceAPI,
        connections: ConnectionManager,
        admission: AdmissionController,
        params: RunParameters,
        clock: Clock | None = None,
    ) -> None:
        self._target = target
        self._api = api
        self._connections = connections
        self._admission = admission
        self._params = params
        self._clock = clock or Clock()
        self._log = camera_logger(logger, target.name)
        self._files: list[FileRecord] = []

    @property
    def name(self) -> str:
        return self._target.name

    async def download(self) -> CameraReport:
        """Connect, claim an admission slot and download all windows."""
        report = CameraReport(camera=self.name)

        try:
            session = await self._connections.connect(self._target)
        except ConnectError as e:
            self._log.error(e.message)
            report.error = e.message
            return report

        async with session:
            report.channels = len(session.channels)

            already_active = self._admission.is_active(self.name)
            if not await self._admission.try_admit(self.name):
                error = AdmissionDeniedError(self.name, self._admission.cap, already_active)
                report.error = error.message
                return report
            report.admitted = True

            try:
                self._log.debug("Searching for files to download")
                await self._process_channels(session, report)
                report.success = True
            except CameraError as e:
                self._log.error(e.message)
                report.error = e.message
            finally:
                if self._admission.is_active(self.name):
                    await self._admission.release(self.name)

        self._log.info(f"Files are processed: {report.summary()}")
        return report

    async def reboot(self) -> CameraReport:
        """Connect and issue a single reboot command."""
        report = CameraReport(camera=self.name, mode="reboot")

        try:
            session = await self._connections.connect(self._target)
        except ConnectError as e:
            self._log.error(e.message)
            report.error = e.message
            return report

        async with session:
            self._log.debug("Rebooting camera")
            try:
                await self._api.reboot(session.handle)
            except DeviceError as e:
                error = RebootError(self.name, e)
                self._log.error(error.message)
                report.error = error.message
                return report

        self._log.info("Camera is rebooted")
        report.success = True
        return report

    async def _process_channels(self, session: DeviceSession, report: CameraReport) -> None:
        transfer = FileTransfer(self._api, session, self._params, self._clock, self._log)

        for channel in session.channels:
            self._log.debug(f"Processing channel {channel.id}")
            for interval in self._target.intervals:
                self._log.debug(f"Processing period {interval}")
                if await self._process_window(session, transfer, channel.id, interval, report):
                    report.truncated = True
                    self._log.info("Stopping camera by global timeout")
                    return

    async def _process_window(
        self,
        session: DeviceSession,
        transfer: FileTransfer,
        channel_id: int,
        interval: Interval,
        report: CameraReport,
    ) -> bool:
        """
        Download one channel+interval window.

        Returns:
            True if the global deadline was reached and the camera must stop.

        Raises:
            EnumerationError: File search failed.
            EmptyResultError: Nothing found and empty windows are camera-fatal.
        """
        start, end = interval.start_epoch, interval.end_epoch
        if start >= end:
            self._log.error(f"Invalid time: start time not before end time ({interval})")
            return False

        self._files.clear()

        try:
            found = await self._api.find_files(session.handle, channel_id, start, end)
        except DeviceError as e:
            raise EnumerationError(self.name, channel_id, e) from e

        for item in found:
            if item.end <= item.start:
                self._log.warning(f"Ignoring file {item.name} with invalid range {item.start}-{item.end}")
                continue
            self._files.append(
                FileRecord.from_found(item, channel_id, self._params.output_root, self.name)
            )

        self._log.info(f"Found files to download on channel {channel_id} - {len(self._files)}")
        if not self._files:
            self._handle_empty_window(channel_id, interval)
            return False

        report.files_found += len(self._files)

        for record in self._files:
            present = record.already_present()
            if present is not None:
                self._log.info(f"File {self.name}/{present.name} already exists - skipping")
                report.skipped += 1
                continue

            record.target_dir.mkdir(parents=True, exist_ok=True)
            result = await transfer.download(record)
            if result.success:
                report.downloaded += 1
            else:
                report.failed += 1
                self._remove_partial(record)

            if deadline_reached(self._clock, self._params.deadline):
                return True

        return False

    def _handle_empty_window(self, channel_id: int, interval: Interval) -> None:
        """Single decision point for windows where search found nothing."""
        if self._params.empty_result_is_fatal:
            raise EmptyResultError(self.name, channel_id)
        self._log.warning(f"No files found for channel {channel_id} in {interval}")

    def _remove_partial(self, record: FileRecord) -> None:
        """Best-effort removal of whatever the failed transfer left behind."""
        for path in (record.partial_path, record.completed_path):
            if not path.exists():
                continue
            try:
                path.unlink()
                self._log.info(f"File {self.name}/{path.name} was deleted")
            except OSError as e:
                error = FilesystemCleanupError(str(path), e)
                self._log.error(f"{error.message}: {e}")


__all__ = ["CameraDownloader"]
