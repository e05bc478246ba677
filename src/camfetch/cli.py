"""
camfetch CLI.

Usage:
    camfetch download --plan plan.json
    camfetch download --camera CAM1 --camera CAM2 --start 2024-05-01 --end 2024-05-02
    camfetch reboot --camera CAM1
    camfetch ledger show
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table

from camfetch.config import FetchSettings, configure_settings
from camfetch.exceptions import AdapterLoadError
from camfetch.logging import setup_logging
from camfetch.orchestrator import Mode, Orchestrator
from camfetch.plan import CameraPlan
from camfetch.services.ledger import Ledger

if TYPE_CHECKING:
    from camfetch.device.base import DeviceAPI
    from camfetch.services.download import RunSummary

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _config_error(message: str) -> SystemExit:
    err_console.print(f"[red]Configuration error:[/red] {message}")
    return SystemExit(EXIT_CONFIG)


def load_settings(ctx: click.Context, **overrides: Any) -> FetchSettings:
    """Build settings from env/.env plus non-empty CLI overrides."""
    values = dict(ctx.obj or {})
    values.update(overrides)
    values = {k: v for k, v in values.items() if v is not None}
    try:
        settings = configure_settings(**values)
    except ValueError as e:
        raise _config_error(str(e)) from e
    setup_logging(settings.log_level, settings.log_json, settings.log_file)
    return settings


def build_plan(
    settings: FetchSettings,
    plan_file: Path | None,
    cameras: tuple[str, ...],
    start: datetime | None,
    end: datetime | None,
    require_window: bool = True,
) -> CameraPlan:
    """Resolve the camera plan from --plan, the settings or --camera/--start/--end."""
    if plan_file is not None and cameras:
        raise _config_error("use either --plan or --camera, not both")

    if cameras:
        if not require_window:
            return CameraPlan.from_mapping({c: [] for c in cameras})
        if start is None or end is None:
            raise _config_error("--camera needs --start and --end")
        if start >= end:
            raise _config_error("--start must be before --end")
        return CameraPlan.single_window(cameras, start.astimezone(), end.astimezone())

    path = plan_file or settings.plan_file
    if path is None:
        raise _config_error("no cameras given (use --plan or --camera)")
    try:
        plan = CameraPlan.load(path)
    except (OSError, ValueError) as e:
        raise _config_error(f"cannot load plan {path}: {e}") from e
    if not len(plan):
        raise _config_error(f"plan {path} lists no cameras")
    return plan


def load_api(settings: FetchSettings) -> DeviceAPI:
    from camfetch.device import load_device_api

    try:
        return load_device_api(settings.device_api)
    except AdapterLoadError as e:
        raise _config_error(str(e)) from e


@click.group()
@click.option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-json", is_flag=True, help="Write logs as JSON lines")
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write logs to a file")
@click.version_option(package_name="camfetch")
@click.pass_context
def main(
    ctx: click.Context,
    log_level: str | None,
    log_json: bool,
    log_file: Path | None,
) -> None:
    """Download recordings from a cloud-brokered camera fleet."""
    ctx.ensure_object(dict)
    # Unset options fall through to the environment
    ctx.obj.update(log_level=log_level, log_json=log_json or None, log_file=log_file)


# =============================================================================
# Download Command
# =============================================================================


@main.command()
@click.option("--plan", "plan_file", type=click.Path(path_type=Path), help="JSON camera plan")
@click.option("--camera", "-c", "cameras", multiple=True, help="Camera id (repeatable)")
@click.option("--start", type=click.DateTime(_DATE_FORMATS), help="Window start (local time)")
@click.option("--end", type=click.DateTime(_DATE_FORMATS), help="Window end (local time)")
@click.option("--deadline-minutes", type=float, help="Global time budget in minutes")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Recordings folder")
@click.option("--max-cameras", type=int, help="Cameras downloading at once")
@click.option("--device-api", help="Device API adapter (package.module:factory)")
@click.pass_context
def download(
    ctx: click.Context,
    plan_file: Path | None,
    cameras: tuple[str, ...],
    start: datetime | None,
    end: datetime | None,
    deadline_minutes: float | None,
    output: Path | None,
    max_cameras: int | None,
    device_api: str | None,
) -> None:
    """Download recordings of the planned cameras.

    Files already on disk are skipped, so an interrupted run can simply be
    started again.

    Examples:

        camfetch download --plan plan.json

        camfetch download -c CAM1 --start 2024-05-01 --end 2024-05-02
    """
    settings = load_settings(
        ctx,
        max_process_minutes=deadline_minutes,
        recordings_folder=output,
        max_cameras_at_once=max_cameras,
        device_api=device_api,
    )
    try:
        settings.validate_for_download()
    except ValueError as e:
        raise _config_error(str(e)) from e

    plan = build_plan(settings, plan_file, cameras, start, end)
    api = load_api(settings)

    summary = asyncio.run(_run_async(settings, api, plan, Mode.DOWNLOAD))
    _print_summary(summary)
    raise SystemExit(EXIT_OK if summary.ok else EXIT_FAILED)


# =============================================================================
# Reboot Command
# =============================================================================


@main.command()
@click.option("--plan", "plan_file", type=click.Path(path_type=Path), help="JSON camera plan")
@click.option("--camera", "-c", "cameras", multiple=True, help="Camera id (repeatable)")
@click.option("--device-api", help="Device API adapter (package.module:factory)")
@click.pass_context
def reboot(
    ctx: click.Context,
    plan_file: Path | None,
    cameras: tuple[str, ...],
    device_api: str | None,
) -> None:
    """Reboot the planned cameras."""
    settings = load_settings(ctx, device_api=device_api)
    try:
        settings.validate_for_download()
    except ValueError as e:
        raise _config_error(str(e)) from e

    plan = build_plan(settings, plan_file, cameras, None, None, require_window=False)
    api = load_api(settings)

    summary = asyncio.run(_run_async(settings, api, plan, Mode.REBOOT))
    _print_summary(summary)
    raise SystemExit(EXIT_OK if summary.ok else EXIT_FAILED)


async def _run_async(
    settings: FetchSettings,
    api: DeviceAPI,
    plan: CameraPlan,
    mode: Mode,
) -> RunSummary:
    orchestrator = Orchestrator.from_settings(settings, api)
    return await orchestrator.run(plan, mode)


def _print_summary(summary: RunSummary) -> None:
    if not summary.cloud_connected:
        err_console.print(f"[red]Error:[/red] {summary.error or 'cloud login failed'}")
        return

    if not summary.reports:
        console.print("[yellow]No planned cameras found in the cloud account[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Camera", width=20)
    table.add_column("Status", width=8)
    if summary.mode == Mode.DOWNLOAD.value:
        table.add_column("Found", justify="right")
        table.add_column("Downloaded", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Failed", justify="right")
    table.add_column("Note")

    for report in summary.reports:
        status = "[green]ok[/green]" if report.success else "[red]failed[/red]"
        note = report.error or ("stopped by global timeout" if report.truncated else "")
        row = [report.camera, status]
        if summary.mode == Mode.DOWNLOAD.value:
            row += [
                str(report.files_found),
                str(report.downloaded),
                str(report.skipped),
                str(report.failed),
            ]
        table.add_row(*row, note)

    console.print(table)
    console.print(
        f"[dim]Processed:[/dim] {len(summary.successful_cameras)} of {summary.cameras_selected}"
    )


# =============================================================================
# Ledger Commands
# =============================================================================


@main.group()
def ledger() -> None:
    """Inspect the ledger of cameras interrupted mid-download."""
    pass


@ledger.command("show")
@click.option("--path", type=click.Path(path_type=Path), help="Ledger file")
@click.pass_context
def ledger_show(ctx: click.Context, path: Path | None) -> None:
    """List cameras that were active when a previous run stopped."""
    settings = load_settings(ctx, ledger_path=path)
    entries = Ledger(settings.ledger_path).entries()

    if not entries:
        console.print("[green]Ledger is empty[/green]")
        return

    console.print(f"[dim]Ledger:[/dim] {settings.ledger_path}")
    for name in entries:
        console.print(f"  [cyan]{name}[/cyan]")


@ledger.command("clear")
@click.option("--path", type=click.Path(path_type=Path), help="Ledger file")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def ledger_clear(ctx: click.Context, path: Path | None, yes: bool) -> None:
    """Remove every entry from the ledger."""
    settings = load_settings(ctx, ledger_path=path)
    if not yes:
        click.confirm(f"Clear {settings.ledger_path}?", abort=True)
    removed = Ledger(settings.ledger_path).clear()
    console.print(f"Removed {removed} entr{'y' if removed == 1 else 'ies'}")


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    main()
