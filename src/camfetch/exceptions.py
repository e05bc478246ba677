"""
camfetch exceptions.

Two families matter to the orchestration core:

- CameraError: ends the whole camera's processing (slot and session released).
- FileTransferError: ends only the current file; sibling files continue.

DeviceError is raised by Device API adapters for any failed primitive and is
mapped onto the families above by the core.
"""

from __future__ import annotations


class CamFetchError(Exception):
    """Base exception for camfetch."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self._original_cause = cause
        super().__init__(message)
        # Keep the cause for inspection without the chained traceback noise
        self.__suppress_context__ = True


# =============================================================================
# Device API
# =============================================================================


class DeviceError(CamFetchError):
    """A Device API primitive failed."""

    def __init__(self, operation: str, code: int = 0, detail: str | None = None) -> None:
        self.operation = operation
        self.code = code
        message = f"{operation} failed (error {code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CloudLoginError(CamFetchError):
    """Login to the cloud root session failed."""

    def __init__(self, url: str, cause: Exception | None = None) -> None:
        self.url = url
        super().__init__(f"Unable to log in to cloud {url}", cause=cause)


class AdapterLoadError(CamFetchError):
    """Configured Device API adapter could not be imported."""

    def __init__(self, path: str, cause: Exception | None = None) -> None:
        self.path = path
        super().__init__(f"Cannot load device adapter '{path}'", cause=cause)


# =============================================================================
# Camera-fatal
# =============================================================================


class CameraError(CamFetchError):
    """Error that ends a camera's processing."""

    def __init__(self, camera: str, message: str, cause: Exception | None = None) -> None:
        self.camera = camera
        super().__init__(f"{camera}: {message}", cause=cause)


class ConnectError(CameraError):
    """All connect attempts failed."""

    def __init__(
        self,
        camera: str,
        attempts: int,
        cause: Exception | None = None,
        reason: str | None = None,
    ) -> None:
        self.attempts = attempts
        super().__init__(
            camera,
            reason or f"connection failed after {attempts} attempt(s)",
            cause=cause,
        )


class ConnectTimeoutError(ConnectError):
    """Connect deadline elapsed before a session was established."""

    def __init__(self, camera: str, attempts: int, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            camera,
            attempts,
            reason=(
                f"exceeded maximum connection time of {timeout_seconds:g}s "
                f"after {attempts} attempt(s)"
            ),
        )


class AdmissionDeniedError(CameraError):
    """Active camera cap reached when the camera tried to claim a slot."""

    def __init__(self, camera: str, cap: int, already_active: bool = False) -> None:
        self.cap = cap
        self.already_active = already_active
        if already_active:
            message = "skipped, camera is already being processed"
        else:
            message = f"skipped, limit of {cap} active cameras reached"
        super().__init__(camera, message)


class EnumerationError(CameraError):
    """Channel listing or file search could not be opened."""

    def __init__(self, camera: str, channel_id: int, cause: Exception | None = None) -> None:
        self.channel_id = channel_id
        detail = f" ({cause})" if cause else ""
        super().__init__(camera, f"file search failed on channel {channel_id}{detail}", cause=cause)


class EmptyResultError(CameraError):
    """File search succeeded but found nothing in the window."""

    def __init__(self, camera: str, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(camera, f"no files found for channel {channel_id}")


class RebootError(CameraError):
    """Reboot command rejected by the device."""

    def __init__(self, camera: str, cause: Exception | None = None) -> None:
        detail = f" ({cause})" if cause else ""
        super().__init__(camera, f"reboot failed{detail}", cause=cause)


# =============================================================================
# File-fatal
# =============================================================================


class FileTransferError(CamFetchError):
    """Error that ends the current file only."""

    state = "failed"

    def __init__(self, file_name: str, message: str, cause: Exception | None = None) -> None:
        self.file_name = file_name
        super().__init__(f"{file_name}: {message}", cause=cause)


class TransferOpenError(FileTransferError):
    """Transfer session could not be opened."""

    def __init__(self, file_name: str, cause: Exception | None = None) -> None:
        detail = f" ({cause})" if cause else ""
        super().__init__(file_name, f"cannot open transfer{detail}", cause=cause)


class PollError(FileTransferError):
    """Too many consecutive progress query failures."""

    def __init__(self, file_name: str, failures: int) -> None:
        self.failures = failures
        super().__init__(file_name, f"progress query failed {failures} times in a row")


class FileTimeoutError(FileTransferError):
    """Per-file time budget exhausted."""

    state = "timed_out"

    def __init__(self, file_name: str, elapsed_seconds: float) -> None:
        self.elapsed_seconds = elapsed_seconds
        super().__init__(file_name, f"not downloaded in {elapsed_seconds:.0f}s - timeout")


class StallTimeoutError(FileTransferError):
    """No forward progress within the no-progress window."""

    state = "stalled"

    def __init__(self, file_name: str, stalled_seconds: float) -> None:
        self.stalled_seconds = stalled_seconds
        super().__init__(file_name, f"download stuck for {stalled_seconds:.0f}s - cancelling")


class GlobalDeadlineError(FileTransferError):
    """Process-wide deadline reached."""

    state = "deadline"

    def __init__(self, file_name: str) -> None:
        super().__init__(file_name, "cancelled due to global timeout")


class FilesystemCleanupError(CamFetchError):
    """Partial artifact could not be removed. Logged, never fatal."""

    def __init__(self, path: str, cause: Exception | None = None) -> None:
        self.path = path
        super().__init__(f"Error deleting {path}", cause=cause)


__all__ = [
    "CamFetchError",
    "DeviceError",
    "CloudLoginError",
    "AdapterLoadError",
    "CameraError",
    "ConnectError",
    "ConnectTimeoutError",
    "AdmissionDeniedError",
    "EnumerationError",
    "EmptyResultError",
    "RebootError",
    "FileTransferError",
    "TransferOpenError",
    "PollError",
    "FileTimeoutError",
    "StallTimeoutError",
    "GlobalDeadlineError",
    "FilesystemCleanupError",
]
