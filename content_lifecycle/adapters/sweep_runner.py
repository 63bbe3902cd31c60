"""
In-process sweep timer.

Runs PublishSweeper.sweep on a background thread at a fixed interval.
Used by the CLI `scheduler` command and, when rules enable it, inside the
API process. An external cron hitting the sweep endpoint is equivalent.

Key behaviors:
- Errors inside one sweep are logged and the loop keeps going
- stop() waits briefly for the current sweep to finish
- trigger_now() runs a sweep synchronously on the caller's thread
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from content_lifecycle.core.services.scheduler import PublishSweeper, SweepSummary

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Background timer loop around a PublishSweeper."""

    def __init__(
        self,
        sweeper: PublishSweeper,
        interval_seconds: float = 60.0,
    ) -> None:
        self._sweeper = sweeper
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="sweep-scheduler", daemon=True)
        self._thread.start()
        self._running = True
        logger.info("Sweep scheduler started (interval: %.1fs)", self._interval)

    def stop(self) -> None:
        """Stop the loop gracefully."""
        if not self._running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._running = False
        logger.info("Sweep scheduler stopped")

    def trigger_now(self) -> SweepSummary:
        """Run one sweep immediately."""
        return self._sweeper.sweep()

    @property
    def is_running(self) -> bool:
        return self._running

    def run_forever(self) -> None:
        """Foreground loop for the CLI; returns after stop() or Ctrl-C."""
        try:
            while True:
                self._run_once()
                if self._stop_event.wait(timeout=self._interval):
                    break
        except KeyboardInterrupt:
            logger.info("Sweep scheduler interrupted")

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self._interval):
            self._run_once()

    def _run_once(self) -> None:
        try:
            summary = self._sweeper.sweep()
            if summary.total_errors:
                logger.warning(
                    "Sweep left %d scheduled item(s) unpublished: %s",
                    summary.total_errors,
                    ", ".join(str(r.content_id) for r in summary.errors()),
                )
        except Exception:
            logger.exception("Error in sweep scheduler loop")
