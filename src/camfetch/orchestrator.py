"""
Orchestrator: fan camera tasks out under one cloud session and fan them in.

    login cloud -> list fleet -> select planned cameras
        -> one task per camera (connect, admit, download | reboot)
        -> gather -> logout cloud -> SDK cleanup
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel

from camfetch.clock import Clock
from camfetch.config import FetchSettings, RunParameters, SdkOptions, sdk_options_from_settings
from camfetch.exceptions import CloudLoginError, DeviceError
from camfetch.logging import get_logger
from camfetch.services.admission import AdmissionController
from camfetch.services.connection import ConnectionManager
from camfetch.services.download import CameraDownloader, CameraReport, RunSummary
from camfetch.services.ledger import Ledger

if TYPE_CHECKING:
    from camfetch.device.base import DeviceAPI, RootSession
    from camfetch.models import CameraTarget
    from camfetch.plan import CameraPlan

logger = get_logger(__name__)


class Mode(str, Enum):
    DOWNLOAD = "download"
    REBOOT = "reboot"


class CloudCredentials(BaseModel):
    url: str
    user: str
    password: str = ""


class Orchestrator:
    """
    Runs one download or reboot pass over the planned cameras.

    Example:
        >>> orchestrator = Orchestrator.from_settings(get_settings(), api)
        >>> summary = await orchestrator.run(CameraPlan.load(Path("plan.json")))
        >>> print(summary.summary())
    """

    def __init__(
        self,
        api: DeviceAPI,
        params: RunParameters,
        credentials: CloudCredentials,
        ledger: Ledger,
        sdk_options: SdkOptions | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._api = api
        self._params = params
        self._credentials = credentials
        self._ledger = ledger
        self._sdk_options = sdk_options
        self._clock = clock or Clock()
        self._admission: AdmissionController | None = None

    @classmethod
    def from_settings(cls, settings: FetchSettings, api: DeviceAPI) -> Orchestrator:
        return cls(
            api=api,
            params=RunParameters.from_settings(settings),
            credentials=CloudCredentials(
                url=settings.cloud_url,
                user=settings.cloud_user,
                password=settings.cloud_password,
            ),
            ledger=Ledger(settings.ledger_path),
            sdk_options=sdk_options_from_settings(settings),
        )

    @property
    def params(self) -> RunParameters:
        return self._params

    @property
    def admission(self) -> AdmissionController | None:
        """Admission controller of the current (or last) run."""
        return self._admission

    async def run(self, plan: CameraPlan, mode: Mode = Mode.DOWNLOAD) -> RunSummary:
        """
        Process every planned camera found in the cloud account.

        The cloud session is logged out and the SDK cleaned up on every path.
        """
        summary = RunSummary(mode=mode.value)
        self._prepare_folders()

        try:
            if self._sdk_options is not None:
                try:
                    await self._api.initialize(self._sdk_options)
                except DeviceError as e:
                    logger.error(f"Device API initialization failed: {e}")
                    summary.error = str(e)
                    return summary

            url = self._credentials.url
            logger.debug(f"Connecting to the cloud {url} user {self._credentials.user}")
            try:
                root = await self._api.login(url, self._credentials.user, self._credentials.password)
            except DeviceError as e:
                error = CloudLoginError(url, e)
                logger.error(f"{error.message}: {e}")
                summary.error = error.message
                return summary

            summary.cloud_connected = True
            logger.info(f"Connected to the cloud {url} user {self._credentials.user}")

            try:
                cameras = await self._load_cameras(root, plan)
                summary.cameras_selected = len(cameras)
                logger.debug(f"Starting {mode.value} process")
                summary.reports = await self._fan_out(root, cameras, mode)
            finally:
                try:
                    await self._api.logout(root)
                except DeviceError as e:
                    logger.warning(f"Cloud logout failed: {e}")
        finally:
            await self._api.cleanup()

        successful = summary.successful_cameras
        logger.info(
            f"Processed {len(successful)} of {summary.cameras_selected} camera(s): "
            f"{', '.join(successful) or '-'}"
        )
        return summary

    def _prepare_folders(self) -> None:
        folders: list[Path] = [self._params.output_root]
        if self._sdk_options is not None:
            folders.append(self._sdk_options.log_path)
        for folder in folders:
            folder.mkdir(parents=True, exist_ok=True)

    async def _load_cameras(self, root: RootSession, plan: CameraPlan) -> list[CameraTarget]:
        logger.debug("Loading cameras list")
        try:
            devices = await self._api.list_devices(root)
        except DeviceError as e:
            logger.error(f"Error getting list of cameras in cloud account: {e}")
            return []

        cameras = plan.select(devices)
        missing = set(plan.cameras) - {c.name.upper() for c in cameras}
        for name in sorted(missing):
            logger.warning(f"Camera {name} is not listed in the cloud account")
        logger.info(f"Available cameras for processing {len(cameras)}")
        return cameras

    async def _fan_out(
        self,
        root: RootSession,
        cameras: list[CameraTarget],
        mode: Mode,
    ) -> list[CameraReport]:
        params = self._params
        admission = AdmissionController(
            cap=params.max_cameras_at_once,
            ledger=self._ledger,
            poll_interval=params.admission_poll_interval,
        )
        self._admission = admission
        connections = ConnectionManager(self._api, root, admission, params, self._clock)
        semaphore = asyncio.Semaphore(max(len(cameras), params.parallelism_floor))

        async def run_camera(target: CameraTarget) -> CameraReport:
            async with semaphore:
                downloader = CameraDownloader(
                    target, self._api, connections, admission, params, self._clock
                )
                if mode is Mode.REBOOT:
                    return await downloader.reboot()
                return await downloader.download()

        results = await asyncio.gather(
            *(run_camera(target) for target in cameras),
            return_exceptions=True,
        )

        reports: list[CameraReport] = []
        for target, result in zip(cameras, results):
            if isinstance(result, Exception):
                logger.error(f"[{target.name}] Unexpected error: {result}", exc_info=result)
                await admission.release(target.name)
                reports.append(CameraReport(camera=target.name, mode=mode.value, error=str(result)))
            elif isinstance(result, BaseException):
                raise result
            else:
                reports.append(result)
        return reports


__all__ = ["Orchestrator", "Mode", "CloudCredentials"]
