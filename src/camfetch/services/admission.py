"""
Admission controller: global cap on simultaneously active camera sessions.

The active set, the cap and the ledger live behind one asyncio.Condition.
The active count is the size of the set, so count and set can never drift.
"""

from __future__ import annotations

import asyncio

from camfetch.logging import get_logger
from camfetch.services.ledger import Ledger

logger = get_logger(__name__)


class AdmissionController:
    """
    Shared admission service injected into every camera task.

    Example:
        >>> admission = AdmissionController(cap=4, ledger=Ledger(Path("FailedCameras.txt")))
        >>> await admission.wait_for_capacity("CAM1")   # soft pre-check
        >>> if await admission.try_admit("CAM1"):
        ...     try:
        ...         ...
        ...     finally:
        ...         await admission.release("CAM1")
    """

    def __init__(
        self,
        cap: int,
        ledger: Ledger | None = None,
        poll_interval: float = 10.0,
    ) -> None:
        if cap < 1:
            raise ValueError(f"cap must be at least 1, got {cap}")
        self._cap = cap
        self._ledger = ledger
        self._poll_interval = poll_interval
        self._active: set[str] = set()
        self._condition = asyncio.Condition()

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def free_slots(self) -> int:
        return self._cap - len(self._active)

    def active_names(self) -> frozenset[str]:
        return frozenset(self._active)

    def is_active(self, name: str) -> bool:
        return name in self._active

    async def wait_for_capacity(self, name: str) -> float:
        """
        Block while the active count is at or above the cap.

        This is a soft pre-check: it does not reserve a slot, so a caller
        can still lose the race in try_admit(). Each wait is bounded by
        poll_interval and logged; release() wakes waiters early.

        Returns:
            Number of bounded waits performed.
        """
        waits = 0
        async with self._condition:
            while self.free_slots <= 0:
                waits += 1
                logger.warning(
                    f"[{name}] Camera limit of {self._cap} reached, "
                    f"waiting up to {self._poll_interval:g}s for a free slot"
                )
                try:
                    await asyncio.wait_for(self._condition.wait(), self._poll_interval)
                except asyncio.TimeoutError:
                    pass
        return waits

    async def try_admit(self, name: str) -> bool:
        """
        Atomically claim a slot for name and record it in the ledger.

        A name that already holds a slot is refused, so every admitted
        name maps to exactly one slot and one release.
        """
        async with self._condition:
            if name in self._active:
                logger.warning(f"[{name}] Camera skipped: already active")
                return False
            if self.free_slots <= 0:
                logger.warning(
                    f"[{name}] Camera skipped: limit of {self._cap} active cameras reached"
                )
                return False
            self._active.add(name)
            if self._ledger is not None:
                self._ledger.add(name)
            logger.debug(f"[{name}] Admitted, {len(self._active)} of {self._cap} slots in use")
            return True

    async def release(self, name: str) -> bool:
        """
        Return name's slot and drop it from the ledger.

        Idempotent: releasing an unknown name is a no-op that still makes
        sure the ledger does not carry it.

        Returns:
            True if a slot was actually freed.
        """
        async with self._condition:
            was_active = name in self._active
            self._active.discard(name)
            if self._ledger is not None:
                self._ledger.remove(name)
            if was_active:
                logger.debug(
                    f"[{name}] Released, {self.free_slots} slot(s) free"
                )
                self._condition.notify_all()
            return was_active


__all__ = ["AdmissionController"]
