"""
Monitor Agent for SHIELD AI.

Watches a file or directory by polling modification times and reports
every file that changed since the previous pass. It does not call the
model itself: the caller decides what to do with a changed file.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from shield_ai.editor.line_editor import BACKUP_SUFFIX


DEFAULT_EXCLUDES = ("node_modules", "__pycache__")

logger = logging.getLogger("shield_ai.monitor")


class MonitorAgent:
    """
    Polling file watcher.

    The first ``scan()`` records a baseline and reports nothing. Each later
    scan reports files that are new or whose mtime changed.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        on_change: Callable[[Path], None],
        interval: float = 2.0,
        exclude: Iterable[str] = (),
    ) -> None:
        self.root = Path(root).expanduser()
        if not self.root.exists():
            raise FileNotFoundError(f"Path to monitor not found: {self.root}")

        self.on_change = on_change
        self.interval = interval
        self.exclude = set(DEFAULT_EXCLUDES) | set(exclude)
        self._mtimes: Optional[Dict[Path, float]] = None

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def iter_files(self) -> Iterator[Path]:
        if self.root.is_file():
            yield self.root
            return

        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and d not in self.exclude
            )
            for name in sorted(filenames):
                if name.endswith(BACKUP_SUFFIX) or name in self.exclude:
                    continue
                yield Path(dirpath) / name

    def scan(self) -> List[Path]:
        """
        Run one pass and return the files that changed since the last one.
        """
        current: Dict[Path, float] = {}
        for path in self.iter_files():
            try:
                current[path] = path.stat().st_mtime
            except OSError:
                # deleted between listing and stat
                continue

        previous = self._mtimes
        self._mtimes = current

        if previous is None:
            logger.debug(f"Monitor baseline: {len(current)} file(s) under {self.root}")
            return []

        return [
            path for path, mtime in current.items()
            if previous.get(path) != mtime
        ]

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, *, max_cycles: Optional[int] = None) -> int:
        """
        Poll until interrupted (Ctrl-C) or ``max_cycles`` passes.

        Returns the number of change notifications delivered.
        """
        delivered = 0
        cycles = 0

        try:
            self.scan()
            while max_cycles is None or cycles < max_cycles:
                time.sleep(self.interval)
                cycles += 1
                for path in self.scan():
                    logger.info(f"Change detected: {path}")
                    self.on_change(path)
                    delivered += 1
        except KeyboardInterrupt:
            logger.info(f"Monitoring of {self.root} stopped by user")

        return delivered
