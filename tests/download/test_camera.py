"""Tests for the per-camera transfer engine."""

from datetime import timedelta

import pytest

from camfetch.models import Channel, ChannelStatus, Interval
from camfetch.services.download import CameraDownloader, target_base_name


@pytest.fixture
def make_downloader(fake_api, connections, admission, params, clock, make_target):
    """Factory: CameraDownloader for a fleet device."""

    def _make(device, run_params=None, intervals=None):
        return CameraDownloader(
            make_target(device, intervals),
            fake_api,
            connections,
            admission,
            run_params or params,
            clock,
        )

    return _make


class TestDownload:
    """Tests for CameraDownloader.download()."""

    @pytest.mark.asyncio
    async def test_downloads_all_files(self, fake_api, admission, ledger, output_root, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        first = fake_api.add_file("CAM1", 1, window_start)
        second = fake_api.add_file("CAM1", 1, window_start + 600)

        report = await make_downloader(device).download()

        assert report.success is True
        assert report.admitted is True
        assert report.files_found == 2
        assert report.downloaded == 2
        assert report.failed == 0
        for found in (first, second):
            assert (output_root / "CAM1" / target_base_name(found.start, found.end)).exists()

        assert admission.active_count == 0
        assert ledger.entries() == []
        assert len(fake_api.logouts) == 1

    @pytest.mark.asyncio
    async def test_skips_existing_files(self, fake_api, output_root, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        present = fake_api.add_file("CAM1", 1, window_start)
        fake_api.add_file("CAM1", 1, window_start + 600)
        camera_dir = output_root / "CAM1"
        camera_dir.mkdir(parents=True)
        (camera_dir / f"{target_base_name(present.start, present.end)}.mp4").write_bytes(b"done")

        report = await make_downloader(device).download()

        assert report.skipped == 1
        assert report.downloaded == 1
        assert len(fake_api.calls_of("open_transfer")) == 1

    @pytest.mark.asyncio
    async def test_second_run_skips_everything(self, fake_api, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        fake_api.add_file("CAM1", 1, window_start)
        fake_api.add_file("CAM1", 1, window_start + 600)

        await make_downloader(device).download()
        report = await make_downloader(device).download()

        assert report.success is True
        assert report.skipped == 2
        assert report.downloaded == 0
        assert len(fake_api.calls_of("open_transfer")) == 2

    @pytest.mark.asyncio
    async def test_channels_then_intervals_in_order(self, fake_api, make_downloader, window, window_start):
        device = fake_api.add_camera("CAM1", channels=[
            Channel(id=2, status=ChannelStatus.ONLINE),
            Channel(id=1, status=ChannelStatus.ONLINE),
        ])
        later = Interval(start=window.end, end=window.end + timedelta(hours=1))
        for channel_id in (1, 2):
            fake_api.add_file("CAM1", channel_id, window_start)
            fake_api.add_file("CAM1", channel_id, later.start_epoch)

        report = await make_downloader(device, intervals=[window, later]).download()

        searches = [(c[2], c[3]) for c in fake_api.calls_of("find_files")]
        assert searches == [
            (2, window.start_epoch),
            (2, later.start_epoch),
            (1, window.start_epoch),
            (1, later.start_epoch),
        ]
        assert report.downloaded == 4

    @pytest.mark.asyncio
    async def test_invalid_interval_is_skipped(self, fake_api, make_downloader, window, window_start):
        device = fake_api.add_camera("CAM1")
        fake_api.add_file("CAM1", 1, window_start)
        inverted = Interval(start=window.end, end=window.start)

        report = await make_downloader(device, intervals=[inverted, window]).download()

        assert report.success is True
        assert report.downloaded == 1
        assert len(fake_api.calls_of("find_files")) == 1

    @pytest.mark.asyncio
    async def test_failed_file_removes_partial_and_continues(self, fake_api, output_root, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        stuck = fake_api.add_file("CAM1", 1, window_start)
        fake_api.add_file("CAM1", 1, window_start + 600)

        def position(transfer):
            if transfer.start == stuck.start:
                return transfer.start
            return min(transfer.start + 10 * transfer.polls, transfer.end)

        fake_api.position_fn = position

        report = await make_downloader(device).download()

        assert report.success is True
        assert report.failed == 1
        assert report.downloaded == 1
        assert not (output_root / "CAM1" / target_base_name(stuck.start, stuck.end)).exists()


class TestCameraFatal:
    """Camera-fatal errors end the camera but release everything."""

    @pytest.mark.asyncio
    async def test_search_failure(self, fake_api, admission, ledger, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        fake_api.add_file("CAM1", 1, window_start)
        fake_api.fail_find.add("CAM1")

        report = await make_downloader(device).download()

        assert report.success is False
        assert "file search failed" in report.error
        assert admission.active_count == 0
        assert ledger.entries() == []
        assert len(fake_api.logouts) == 1
        assert fake_api.calls_of("open_transfer") == []

    @pytest.mark.asyncio
    async def test_empty_window_is_fatal(self, fake_api, admission, make_downloader):
        device = fake_api.add_camera("CAM1")

        report = await make_downloader(device).download()

        assert report.success is False
        assert "no files found" in report.error
        assert admission.active_count == 0

    @pytest.mark.asyncio
    async def test_empty_window_can_be_tolerated(self, fake_api, params, make_downloader):
        device = fake_api.add_camera("CAM1")
        lenient = params.model_copy(update={"empty_result_is_fatal": False})

        report = await make_downloader(device, run_params=lenient).download()

        assert report.success is True
        assert report.files_found == 0

    @pytest.mark.asyncio
    async def test_connect_failure(self, fake_api, params, admission, make_downloader):
        device = fake_api.add_camera("CAM1")
        fake_api.login_failures["CAM1"] = 99

        report = await make_downloader(device).download()

        assert report.success is False
        assert report.admitted is False
        assert "5 attempt" in report.error
        assert admission.active_count == 0
        assert fake_api.logouts == []

    @pytest.mark.asyncio
    async def test_admission_denied(self, fake_api, params, clock, ledger, make_target):
        from camfetch.services.admission import AdmissionController
        from camfetch.services.connection import ConnectionManager

        admission = AdmissionController(cap=1, ledger=ledger, poll_interval=0.05)
        connections = ConnectionManager(fake_api, "root", admission, params, clock)
        device = fake_api.add_camera("CAM1")

        # Another camera wins the race between the pre-check and the claim
        async def grab_slot(name):
            await admission.try_admit("CAM9")
            return 0

        admission.wait_for_capacity = grab_slot
        downloader = CameraDownloader(make_target(device), fake_api, connections, admission, params, clock)

        report = await downloader.download()

        assert report.success is False
        assert report.admitted is False
        assert "limit of 1" in report.error
        assert admission.active_names() == frozenset({"CAM9"})
        assert len(fake_api.logouts) == 1


class TestDuplicateCamera:
    """A second task for an already active camera never shares its slot."""

    @pytest.mark.asyncio
    async def test_duplicate_is_refused_and_keeps_first_slot(self, fake_api, admission, ledger, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        fake_api.add_file("CAM1", 1, window_start)
        await admission.try_admit("CAM1")

        report = await make_downloader(device).download()

        assert report.success is False
        assert report.admitted is False
        assert "already being processed" in report.error
        assert fake_api.calls_of("find_files") == []
        assert admission.is_active("CAM1")
        assert ledger.entries() == ["CAM1"]
        assert len(fake_api.logouts) == 1


class TestGlobalDeadline:
    """Deadline truncation stops the camera after the current file."""

    @pytest.mark.asyncio
    async def test_truncates(self, fake_api, params, clock, output_root, make_downloader, window_start):
        device = fake_api.add_camera("CAM1")
        fake_api.add_file("CAM1", 1, window_start)
        second = fake_api.add_file("CAM1", 1, window_start + 600)
        fake_api.add_file("CAM1", 1, window_start + 1200)
        short = params.model_copy(update={"deadline": clock.now() + timedelta(seconds=65)})

        report = await make_downloader(device, run_params=short).download()

        assert report.success is True
        assert report.truncated is True
        assert report.downloaded == 1
        assert report.failed == 1
        assert len(fake_api.calls_of("open_transfer")) == 2
        assert not (output_root / "CAM1" / target_base_name(second.start, second.end)).exists()


class TestReboot:
    """Tests for CameraDownloader.reboot()."""

    @pytest.mark.asyncio
    async def test_reboot(self, fake_api, admission, make_downloader):
        device = fake_api.add_camera("CAM1")

        report = await make_downloader(device).reboot()

        assert report.success is True
        assert report.mode == "reboot"
        assert fake_api.reboots == ["CAM1"]
        assert len(fake_api.logouts) == 1
        assert admission.active_count == 0

    @pytest.mark.asyncio
    async def test_reboot_failure(self, fake_api, make_downloader):
        device = fake_api.add_camera("CAM1")
        fake_api.fail_reboot.add("CAM1")

        report = await make_downloader(device).reboot()

        assert report.success is False
        assert "reboot failed" in report.error
        assert len(fake_api.logouts) == 1
