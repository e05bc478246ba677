"""
Camera plan: which cameras to process and which intervals to scan.

Plan file format (JSON)::

    {
        "CAM1": [{"start": "2024-05-01T00:00:00", "end": "2024-05-01T06:00:00"}],
        "cam2": [{"start": "2024-05-01T00:00:00", "end": "2024-05-02T00:00:00"}]
    }

Camera ids are matched case-insensitively against the fleet listing.
"""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from camfetch.logging import get_logger
from camfetch.models import CameraTarget, CloudDevice, Interval

logger = get_logger(__name__)


class CameraPlan(BaseModel):
    """Per-camera interval lists, keyed by upper-cased camera id.

    Ids listed more than once (ignoring case) are ambiguous: they are kept
    out of `cameras` and never selected.
    """

    cameras: dict[str, list[Interval]] = Field(default_factory=dict)
    ambiguous: set[str] = Field(default_factory=set)

    @classmethod
    def from_mapping(cls, data: dict[str, list[dict]]) -> CameraPlan:
        counts = Counter(camera_id.strip().upper() for camera_id in data)
        cameras: dict[str, list[Interval]] = {}
        for camera_id, intervals in data.items():
            key = camera_id.strip().upper()
            if counts[key] > 1:
                continue
            cameras[key] = [Interval.model_validate(i) for i in intervals]

        ambiguous = {key for key, count in counts.items() if count > 1}
        for key in sorted(ambiguous):
            logger.warning(f"Camera {key} is listed {counts[key]} times in the plan - skipping")
        return cls(cameras=cameras, ambiguous=ambiguous)

    @classmethod
    def load(cls, path: Path) -> CameraPlan:
        """Load a plan from a JSON file."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Plan file {path} must contain a JSON object")
        plan = cls.from_mapping(data)
        logger.debug(f"Loaded plan for {len(plan.cameras)} camera(s) from {path}")
        return plan

    @classmethod
    def single_window(
        cls,
        camera_ids: list[str] | tuple[str, ...],
        start: datetime,
        end: datetime,
    ) -> CameraPlan:
        """Same interval for every named camera. Repeated ids collapse into one."""
        unique = {c.strip().upper(): c for c in camera_ids}
        return cls.from_mapping({c: [{"start": start, "end": end}] for c in unique})

    def __len__(self) -> int:
        return len(self.cameras)

    def intervals_for(self, name: str) -> list[Interval] | None:
        return self.cameras.get(name.strip().upper())

    def select(self, devices: list[CloudDevice]) -> list[CameraTarget]:
        """Pick fleet devices present in the plan, in listing order, once per id."""
        selected: list[CameraTarget] = []
        seen: set[str] = set()
        for device in devices:
            intervals = self.intervals_for(device.name)
            if intervals is None:
                continue
            key = device.name.strip().upper()
            if key in seen:
                logger.warning(f"Camera {device.name} is listed twice in the cloud account - skipping duplicate")
                continue
            seen.add(key)
            logger.debug(f"Camera {device.name} added to the list to process")
            selected.append(CameraTarget(device=device, intervals=list(intervals)))
        return selected


__all__ = ["CameraPlan"]
