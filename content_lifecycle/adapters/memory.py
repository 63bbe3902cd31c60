"""
In-memory repositories for tests and local development.

They honour the same contracts as the SQLite adapters: compare-and-set on
status and revision is atomic, and version numbers are assigned under a
per-key lock.
Items are stored as deep copies so callers never share mutable state.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from content_lifecycle.core.services.audit import AuditEntry, AuditQuery
from content_lifecycle.domain.entities import ContentItem, VersionRecord


def _as_uuid(item_id: UUID | str) -> UUID | None:
    # SQLite keys on str(id), so string ids must resolve the same way here.
    if isinstance(item_id, UUID):
        return item_id
    try:
        return UUID(str(item_id))
    except ValueError:
        return None


class InMemoryContentRepo:
    def __init__(self) -> None:
        self._items: dict[UUID, ContentItem] = {}
        self._lock = threading.Lock()

    def get_by_id(self, item_id: UUID | str) -> ContentItem | None:
        key = _as_uuid(item_id)
        with self._lock:
            item = self._items.get(key) if key else None
            return item.model_copy(deep=True) if item else None

    def slug_exists(self, slug: str) -> bool:
        with self._lock:
            return any(item.slug == slug for item in self._items.values())

    def create(self, item: ContentItem) -> ContentItem:
        with self._lock:
            if item.id in self._items:
                raise ValueError(f"Content {item.id} already exists")
            if any(existing.slug == item.slug for existing in self._items.values()):
                raise ValueError(f"Slug '{item.slug}' already exists")
            self._items[item.id] = item.model_copy(deep=True)
        return item

    def compare_and_set_status(
        self, item: ContentItem, expected_status: str, expected_revision: int
    ) -> bool:
        with self._lock:
            current = self._items.get(item.id)
            if current is None:
                return False
            if current.status != expected_status or current.revision != expected_revision:
                return False
            self._items[item.id] = item.model_copy(deep=True)
            return True

    def update_quality(self, item_id: UUID, score: int, issues: list[dict[str, Any]]) -> None:
        key = _as_uuid(item_id)
        with self._lock:
            current = self._items.get(key) if key else None
            if current is None:
                return
            self._items[current.id] = current.model_copy(
                update={"quality_score": score, "quality_issues": list(issues)}
            )

    def list_due_scheduled(self, now_utc: datetime, limit: int = 100) -> list[ContentItem]:
        with self._lock:
            due = [
                item
                for item in self._items.values()
                if item.status == "scheduled"
                and item.scheduled_at is not None
                and item.scheduled_at <= now_utc
            ]
            due.sort(key=lambda i: i.scheduled_at)
            return [item.model_copy(deep=True) for item in due[:limit]]

    def delete(self, item_id: UUID) -> bool:
        key = _as_uuid(item_id)
        with self._lock:
            return key is not None and self._items.pop(key, None) is not None

    def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        with self._lock:
            for item in self._items.values():
                counts[item.status] += 1
        return dict(counts)


class InMemoryVersionRepo:
    def __init__(self) -> None:
        self._versions: dict[tuple[str, str], list[VersionRecord]] = defaultdict(list)
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def append_version(
        self,
        entity_type: str,
        entity_id: str,
        build: Callable[[int], VersionRecord],
    ) -> VersionRecord:
        key = (entity_type, entity_id)
        with self._lock_for(key):
            history = self._versions[key]
            latest = history[-1].version_number if history else 0
            record = build(latest + 1)
            history.append(record)
            return record

    def list_versions(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 50,
    ) -> list[VersionRecord]:
        key = (entity_type, entity_id)
        with self._lock_for(key):
            return list(reversed(self._versions.get(key, [])))[:limit]

    def get_version(
        self,
        entity_type: str,
        entity_id: str,
        version_number: int,
    ) -> VersionRecord | None:
        key = (entity_type, entity_id)
        with self._lock_for(key):
            for record in self._versions.get(key, []):
                if record.version_number == version_number:
                    return record
        return None


class InMemoryAuditRepo:
    """In-memory audit repository for testing/dev."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()

    def save(self, entry: AuditEntry) -> AuditEntry:
        with self._lock:
            self._entries.append(entry)
        return entry

    def get_by_id(self, entry_id: UUID) -> AuditEntry | None:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        return None

    def _matching(self, query: AuditQuery) -> list[AuditEntry]:
        with self._lock:
            results = list(self._entries)

        if query.entity_type:
            results = [e for e in results if e.entity_type == query.entity_type]
        if query.entity_id:
            results = [e for e in results if e.entity_id == query.entity_id]
        if query.actor_id:
            results = [e for e in results if e.actor_id == query.actor_id]
        if query.action:
            results = [e for e in results if e.action == query.action]
        if query.start_time:
            results = [e for e in results if e.timestamp >= query.start_time]
        if query.end_time:
            results = [e for e in results if e.timestamp <= query.end_time]
        return results

    def query(self, query: AuditQuery) -> list[AuditEntry]:
        # Newest first; entries with equal timestamps keep reverse insertion order.
        results = list(reversed(self._matching(query)))
        results.sort(key=lambda e: e.timestamp, reverse=True)
        return results[query.offset : query.offset + query.limit]

    def count(self, query: AuditQuery) -> int:
        return len(self._matching(query))

    def clear(self) -> None:
        """Clear all entries (for testing)."""
        with self._lock:
            self._entries.clear()
