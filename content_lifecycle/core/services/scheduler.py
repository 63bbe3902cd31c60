"""
PublishSweeper - reconciles due scheduled content.

A sweep publishes every item whose status is "scheduled" and whose
scheduled_at has passed. It is a level-triggered reconciler rather than a
job queue: the content table itself is the schedule.

Key behaviors:
- Each item is attempted on its own worker thread with its own timeout, at
  most max_workers at a time
- One item's failure (gate, conflict, datastore, timeout) never aborts the sweep
- Idempotent: published items no longer match the query, and a lost race with
  a human publish surfaces as a conflict, never a double publish
- Items that fail the quality gate stay scheduled and are retried next sweep

A timed-out worker is abandoned, not killed, and its slot goes to the next
item, so a hung item costs only itself. If it later commits, the next sweep
simply no longer sees the item.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from content_lifecycle.domain.errors import LifecycleError

if TYPE_CHECKING:
    from content_lifecycle.core.ports.db import ContentRepoPort
    from content_lifecycle.core.ports.time import TimePort
    from content_lifecycle.core.services.lifecycle import ContentLifecycleService

logger = logging.getLogger(__name__)

# --- Configuration ---


@dataclass(frozen=True)
class SweepConfig:
    """Sweep configuration from rules."""

    interval_seconds: int = 60
    per_item_timeout_seconds: float = 30.0
    max_workers: int = 4
    batch_limit: int = 100


DEFAULT_CONFIG = SweepConfig()


# --- Results ---


SweepOutcome = Literal["published", "error"]


@dataclass(frozen=True)
class SweepItemResult:
    content_id: UUID
    outcome: SweepOutcome
    error_code: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "contentId": str(self.content_id),
            "outcome": self.outcome,
            "errorCode": self.error_code,
            "message": self.message,
        }


@dataclass(frozen=True)
class SweepSummary:
    started_at: datetime
    finished_at: datetime
    results: list[SweepItemResult] = field(default_factory=list)

    @property
    def total_published(self) -> int:
        return sum(1 for r in self.results if r.outcome == "published")

    @property
    def total_errors(self) -> int:
        return sum(1 for r in self.results if r.outcome == "error")

    def errors(self) -> list[SweepItemResult]:
        return [r for r in self.results if r.outcome == "error"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPublished": self.total_published,
            "totalErrors": self.total_errors,
            "results": [r.to_dict() for r in self.results],
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
        }


# --- Sweeper ---


class PublishSweeper:
    """Publishes due scheduled items through the lifecycle service."""

    def __init__(
        self,
        content_repo: ContentRepoPort,
        lifecycle: ContentLifecycleService,
        time_port: TimePort | None = None,
        config: SweepConfig | None = None,
    ) -> None:
        self._repo = content_repo
        self._lifecycle = lifecycle
        self._time = time_port
        self._config = config or DEFAULT_CONFIG

    @property
    def config(self) -> SweepConfig:
        return self._config

    def _now_utc(self) -> datetime:
        if self._time:
            return self._time.now_utc()
        return datetime.now(UTC)

    def sweep(self, now: datetime | None = None) -> SweepSummary:
        """Run one reconciliation pass."""
        started_at = self._now_utc()
        now = now or started_at

        due = self._repo.list_due_scheduled(now, self._config.batch_limit)
        results = self._run_batch([item.id for item in due], now) if due else []

        summary = SweepSummary(
            started_at=started_at,
            finished_at=self._now_utc(),
            results=results,
        )
        logger.info(
            "Sweep finished: %d due, %d published, %d errors",
            len(due),
            summary.total_published,
            summary.total_errors,
        )
        return summary

    def _run_batch(self, content_ids: list[UUID], now: datetime) -> list[SweepItemResult]:
        """
        Publish up to max_workers items at once, each on a fresh thread.

        An item's deadline starts when its thread starts, so time spent
        queued behind other items is never charged to it.
        """
        timeout = self._config.per_item_timeout_seconds
        slots = max(1, self._config.max_workers)
        queue = deque(content_ids)
        running: dict[Future[Any], tuple[UUID, float]] = {}
        results: dict[UUID, SweepItemResult] = {}

        while queue or running:
            while queue and len(running) < slots:
                content_id = queue.popleft()
                future = self._start(content_id, now)
                running[future] = (content_id, time.monotonic() + timeout)

            next_deadline = min(deadline for _, deadline in running.values())
            done, _ = wait(
                running,
                timeout=max(0.0, next_deadline - time.monotonic()),
                return_when=FIRST_COMPLETED,
            )
            for future in done:
                content_id, _ = running.pop(future)
                results[content_id] = self._outcome(content_id, future)

            expired_at = time.monotonic()
            for future, (content_id, deadline) in list(running.items()):
                if deadline <= expired_at and not future.done():
                    # Abandoned; the slot is free for the next item.
                    del running[future]
                    results[content_id] = self._timed_out(content_id)

        return [results[content_id] for content_id in content_ids]

    def _start(self, content_id: UUID, now: datetime) -> Future[Any]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="publish-sweep")
        try:
            return executor.submit(self._lifecycle.publish_scheduled, content_id, now)
        finally:
            # The thread exits once the call returns; never block on it.
            executor.shutdown(wait=False)

    def _timed_out(self, content_id: UUID) -> SweepItemResult:
        logger.warning("Sweep timed out publishing %s", content_id)
        return SweepItemResult(
            content_id=content_id,
            outcome="error",
            error_code="timeout",
            message=f"Timed out after {self._config.per_item_timeout_seconds}s",
        )

    def _outcome(self, content_id: UUID, future: Future[Any]) -> SweepItemResult:
        try:
            future.result()
        except LifecycleError as e:
            logger.warning("Sweep could not publish %s: %s", content_id, e.message)
            return SweepItemResult(
                content_id=content_id,
                outcome="error",
                error_code=e.code,
                message=e.message,
            )
        except Exception as e:
            logger.warning("Sweep failed on %s", content_id, exc_info=True)
            return SweepItemResult(
                content_id=content_id,
                outcome="error",
                error_code="internal_error",
                message=str(e) or type(e).__name__,
            )

        return SweepItemResult(content_id=content_id, outcome="published")
