"""
camfetch: download orchestration for cloud-brokered camera fleets.

Example:
    >>> from camfetch import CameraPlan, Orchestrator, get_settings, load_device_api
    >>> settings = get_settings()
    >>> api = load_device_api(settings.device_api)
    >>> summary = await Orchestrator.from_settings(settings, api).run(CameraPlan.load(path))
"""

from camfetch.config import (
    FetchSettings,
    RunParameters,
    SdkOptions,
    configure_settings,
    get_settings,
    reset_settings,
)
from camfetch.device import DeviceAPI, load_device_api
from camfetch.exceptions import (
    CameraError,
    CamFetchError,
    DeviceError,
    FileTransferError,
)
from camfetch.models import CameraTarget, Channel, CloudDevice, FoundFile, Interval
from camfetch.orchestrator import CloudCredentials, Mode, Orchestrator
from camfetch.plan import CameraPlan
from camfetch.services.download import CameraReport, RunSummary

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "FetchSettings",
    "RunParameters",
    "SdkOptions",
    "get_settings",
    "configure_settings",
    "reset_settings",
    # Device API
    "DeviceAPI",
    "load_device_api",
    # Models
    "Interval",
    "Channel",
    "CloudDevice",
    "FoundFile",
    "CameraTarget",
    "CameraPlan",
    # Orchestration
    "Orchestrator",
    "Mode",
    "CloudCredentials",
    "CameraReport",
    "RunSummary",
    # Errors
    "CamFetchError",
    "CameraError",
    "FileTransferError",
    "DeviceError",
]
