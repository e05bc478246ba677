"""
Logging setup for camfetch.

Console output goes through rich; an optional file handler writes either
plain lines or one JSON object per line. Camera tasks log through a
LoggerAdapter that tags every record with the camera id.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, MutableMapping

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "camfetch"

_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the camfetch hierarchy."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        camera = getattr(record, "camera", None)
        if camera:
            entry["camera"] = camera
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class CameraLogAdapter(logging.LoggerAdapter):
    """Prefix messages with the camera id and attach it as an extra field."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("camera", self.extra["camera"])
        kwargs["extra"] = extra
        return f"[{self.extra['camera']}] {msg}", kwargs


def camera_logger(logger: logging.Logger, camera: str) -> CameraLogAdapter:
    return CameraLogAdapter(logger, {"camera": camera})


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """
    Configure the camfetch logger hierarchy.

    Args:
        level: Log level name.
        json_format: Write JSON lines to log_file (or stderr if no file).
        log_file: Optional log file path.
        console: Rich console for the console handler (stderr by default).

    Returns:
        The configured root camfetch logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if json_format and log_file is None:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(JsonFormatter())
        root.addHandler(stream_handler)
    else:
        rich_handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(rich_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(_FILE_FORMAT))
        root.addHandler(file_handler)

    return root


__all__ = [
    "get_logger",
    "camera_logger",
    "CameraLogAdapter",
    "JsonFormatter",
    "setup_logging",
]
