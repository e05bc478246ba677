"""
Breadcrumb ledger of cameras currently marked active.

One camera name per line. A name is appended when a camera is admitted and
removed when it is released, so a name left behind after a run points at a
camera whose processing was interrupted. The core never reads the ledger
back; `camfetch ledger show` does.

Not internally locked: every mutation from the core happens inside the
AdmissionController's mutual-exclusion domain.
"""

from __future__ import annotations

from pathlib import Path

from camfetch.logging import get_logger

logger = get_logger(__name__)


class Ledger:
    """File-backed set of camera names."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def entries(self) -> list[str]:
        """Names currently recorded, in file order."""
        if not self._path.exists():
            return []
        with open(self._path, encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]

    def __contains__(self, name: str) -> bool:
        return name in self.entries()

    def add(self, name: str) -> bool:
        """Append name unless already present. Returns True if written."""
        if name in self.entries():
            return False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(name + "\n")
        logger.debug(f"Ledger: added {name}")
        return True

    def remove(self, name: str) -> bool:
        """Rewrite the ledger without name. No-op if absent."""
        if not self._path.exists():
            return False
        names = self.entries()
        if name not in names:
            return False
        names = [n for n in names if n != name]
        with open(self._path, "w", encoding="utf-8") as f:
            f.writelines(n + "\n" for n in names)
        logger.debug(f"Ledger: removed {name}")
        return True

    def clear(self) -> int:
        """Remove every entry. Returns how many were dropped."""
        names = self.entries()
        if self._path.exists():
            self._path.unlink()
        return len(names)


__all__ = ["Ledger"]
