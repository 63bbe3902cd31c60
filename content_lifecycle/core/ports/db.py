"""
Persistence ports.

The relational datastore is treated as a generic persistence service.
Adapters live in content_lifecycle.adapters (in-memory and SQLite).

Key requirements:
- compare_and_set_status is the per-row optimistic check: the update only
  lands if the stored status and revision still equal the pre-state read
- append_version assigns max+1 atomically per (entity_type, entity_id)
- Version and audit rows reference entities weakly (no FK lifetime coupling)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from content_lifecycle.core.services.audit import AuditEntry, AuditQuery
    from content_lifecycle.domain.entities import ContentItem, VersionRecord


class ContentRepoPort(Protocol):
    """Content items and their locale variants."""

    def get_by_id(self, item_id: UUID) -> ContentItem | None:
        """Get item with all variants."""
        ...

    def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is taken."""
        ...

    def create(self, item: ContentItem) -> ContentItem:
        """Insert a new item and its variants."""
        ...

    def compare_and_set_status(
        self,
        item: ContentItem,
        expected_status: str,
        expected_revision: int,
    ) -> bool:
        """
        Persist item (status, timestamps, quality cache, variants) only if
        the stored status and revision still equal the expected values.

        item.revision is written as given; callers pass expected_revision + 1.

        Returns False when the optimistic check fails or the row is gone.
        """
        ...

    def update_quality(self, item_id: UUID, score: int, issues: list[dict[str, Any]]) -> None:
        """Refresh the cached quality evaluation."""
        ...

    def list_due_scheduled(self, now_utc: datetime, limit: int = 100) -> list[ContentItem]:
        """Items with status 'scheduled' and scheduled_at <= now_utc."""
        ...

    def delete(self, item_id: UUID) -> bool:
        """Hard delete. Returns False if the item did not exist."""
        ...

    def count_by_status(self) -> dict[str, int]:
        """Number of items per lifecycle status."""
        ...


class VersionRepoPort(Protocol):
    """Append-only version snapshots."""

    def append_version(
        self,
        entity_type: str,
        entity_id: str,
        build: Callable[[int], VersionRecord],
    ) -> VersionRecord:
        """
        Serialize per key: compute next = max+1, call build(next), store.

        Implementations must hold a per-key lock or a write transaction
        across the read and the insert.
        """
        ...

    def list_versions(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 50,
    ) -> list[VersionRecord]:
        """Newest first."""
        ...

    def get_version(
        self,
        entity_type: str,
        entity_id: str,
        version_number: int,
    ) -> VersionRecord | None:
        """Exact version or None."""
        ...


class AuditRepoPort(Protocol):
    """Append-only audit entries."""

    def save(self, entry: AuditEntry) -> AuditEntry:
        """Save an audit entry."""
        ...

    def get_by_id(self, entry_id: UUID) -> AuditEntry | None:
        """Get entry by ID."""
        ...

    def query(self, query: AuditQuery) -> list[AuditEntry]:
        """Query entries with filters, newest first."""
        ...

    def count(self, query: AuditQuery) -> int:
        """Count entries matching query."""
        ...
