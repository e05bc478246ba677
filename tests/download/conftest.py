"""
Pytest fixtures for download service tests.
"""

import pytest

from camfetch.models import Channel, ChannelStatus, FoundFile
from camfetch.services.admission import AdmissionController
from camfetch.services.connection import ConnectionManager, DeviceSession
from camfetch.services.download import FileRecord, FileTransfer
from camfetch.services.ledger import Ledger


@pytest.fixture
def ledger(tmp_path):
    return Ledger(tmp_path / "FailedCameras.txt")


@pytest.fixture
def admission(ledger):
    return AdmissionController(cap=10, ledger=ledger, poll_interval=0.05)


@pytest.fixture
def connections(fake_api, admission, params, clock):
    return ConnectionManager(fake_api, "root", admission, params, clock)


@pytest.fixture
def session(fake_api):
    """Open device session on CAM1 with one online channel."""
    fake_api.add_camera("CAM1")
    return DeviceSession(
        fake_api,
        handle=fake_api.make_handle("CAM1"),
        camera="CAM1",
        channels=[Channel(id=1, status=ChannelStatus.ONLINE)],
    )


@pytest.fixture
def make_record(output_root, window_start):
    """Factory: FileRecord for a 600 s file on channel 1 of CAM1."""

    def _make(offset: int = 0, length: int = 600) -> FileRecord:
        start = window_start + offset
        found = FoundFile(name=f"rec-{start}", start=start, end=start + length)
        record = FileRecord.from_found(found, 1, output_root, "CAM1")
        record.target_dir.mkdir(parents=True, exist_ok=True)
        return record

    return _make


@pytest.fixture
def make_transfer(fake_api, session, clock):
    """Factory: FileTransfer bound to the CAM1 session."""

    def _make(params) -> FileTransfer:
        return FileTransfer(fake_api, session, params, clock)

    return _make
