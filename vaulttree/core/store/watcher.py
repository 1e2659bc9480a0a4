"""
Change Watcher
==============

Best-effort detection of external edits to the container.

A daemon thread polls a stat signature of the container file
(existence, mtime, size, inode) and calls the reload callback when it
changes. Polling can miss a change that is reverted between two checks,
so every mutating operation still reloads under the store lock; the
watcher only keeps idle readers fresher.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from vaulttree.utils.paths import stat_signature


class ChangeWatcher:
    """
    Polls one file and reports changes.

    Usage:
        watcher = ChangeWatcher(path, controller.reload, poll_interval=1.0)
        watcher.start()
        ...
        watcher.stop()

    Callback failures are logged and the loop keeps running.
    """

    __slots__ = (
        "_path", "_callback", "_interval", "_thread",
        "_stop_event", "_signature", "_log",
    )

    def __init__(
        self,
        path: Path,
        callback: Callable[[], object],
        poll_interval: float = 1.0,
    ) -> None:
        self._path = Path(path)
        self._callback = callback
        self._interval = poll_interval
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._signature = stat_signature(self._path)
        self._log = logging.getLogger("vaulttree.watcher")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the polling thread (no-op if already running)."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._signature = stat_signature(self._path)
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="VaultTree-Watcher",
        )
        self._thread.start()
        self._log.info(f"Watching {self._path} for changes")

    def stop(self) -> None:
        """Stop the polling thread and wait for it to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval * 2 + 1)
            self._thread = None
            self._log.info(f"Stopped watching {self._path}")

    def check(self) -> bool:
        """
        Compare the current signature with the last one seen.

        Returns:
            True if the file changed (the callback has been invoked)
        """
        current = stat_signature(self._path)
        if current == self._signature:
            return False

        self._signature = current
        self._log.info(f"Change detected on {self._path}")
        try:
            self._callback()
        except Exception as e:
            self._log.error(f"Reload after change failed: {e}")
        return True

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.check()
            except Exception as e:
                self._log.error(f"Watcher error: {e}")

    def __repr__(self) -> str:
        return f"ChangeWatcher(path={str(self._path)!r}, running={self.is_running})"
