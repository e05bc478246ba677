"""
Camera download service.

Per camera: connect with bounded retry, claim an admission slot, then walk
channels and intervals, skipping files already on disk and driving the rest
through a polling state machine with file, stall and global timeouts.
"""

from camfetch.services.download._camera import CameraDownloader
from camfetch.services.download._models import (
    CameraReport,
    FileRecord,
    FileResult,
    RunSummary,
    TransferState,
    target_base_name,
)
from camfetch.services.download._transfer import FileTransfer, deadline_reached

__all__ = [
    "CameraDownloader",
    "CameraReport",
    "FileRecord",
    "FileResult",
    "FileTransfer",
    "RunSummary",
    "TransferState",
    "deadline_reached",
    "target_base_name",
]
