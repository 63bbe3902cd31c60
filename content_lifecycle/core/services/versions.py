"""
VersionService - immutable snapshots of entity content.

Key behaviors:
- One snapshot per committed change
- Version numbers per (entity_type, entity_id) are exactly 1..N, no gaps,
  no duplicates, even with concurrent writers
- The repository serializes the max+1 assignment per key
- History survives entity deletion (weak reference by type/id)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from content_lifecycle.domain.entities import VersionRecord
from content_lifecycle.domain.errors import NotFound

if TYPE_CHECKING:
    from content_lifecycle.core.ports.db import VersionRepoPort
    from content_lifecycle.core.ports.time import TimePort


@dataclass(frozen=True)
class FieldChange:
    """A snapshot path that differs between two versions."""

    path: str
    before: Any
    after: Any


def _flatten(value: Any, prefix: str = "") -> dict[str, Any]:
    """Flatten nested snapshot dicts; variant lists are keyed by locale."""
    flat: dict[str, Any] = {}
    if isinstance(value, dict):
        for key, sub in value.items():
            flat.update(_flatten(sub, f"{prefix}.{key}" if prefix else str(key)))
    elif isinstance(value, list) and value and all(isinstance(v, dict) and "locale" in v for v in value):
        for sub in value:
            flat.update(_flatten(sub, f"{prefix}[{sub['locale']}]"))
    else:
        flat[prefix] = value
    return flat


def diff_snapshots(before: dict[str, Any], after: dict[str, Any]) -> list[FieldChange]:
    old = _flatten(before)
    new = _flatten(after)
    changes = []
    for path in sorted(set(old) | set(new)):
        if old.get(path) != new.get(path):
            changes.append(FieldChange(path=path, before=old.get(path), after=new.get(path)))
    return changes


class VersionService:
    """Creates and reads version snapshots."""

    def __init__(
        self,
        repo: VersionRepoPort,
        time_port: TimePort | None = None,
    ) -> None:
        self._repo = repo
        self._time = time_port

    def _now_utc(self) -> datetime:
        if self._time:
            return self._time.now_utc()
        return datetime.now(UTC)

    def create_version(
        self,
        entity_type: str,
        entity_id: str,
        snapshot: dict[str, Any],
        author_id: UUID | None,
        message: str,
    ) -> VersionRecord:
        """Append the next version for this entity."""
        created_at = self._now_utc()

        def build(version_number: int) -> VersionRecord:
            return VersionRecord(
                id=uuid4(),
                entity_type=entity_type,
                entity_id=entity_id,
                version_number=version_number,
                snapshot=snapshot,
                author_id=author_id,
                message=message,
                created_at=created_at,
            )

        return self._repo.append_version(entity_type, entity_id, build)

    def get_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 50,
    ) -> list[VersionRecord]:
        """Versions newest first."""
        return self._repo.list_versions(entity_type, entity_id, limit)

    def get_version(
        self,
        entity_type: str,
        entity_id: str,
        version_number: int,
    ) -> VersionRecord:
        record = self._repo.get_version(entity_type, entity_id, version_number)
        if record is None:
            raise NotFound(f"Version {version_number} of {entity_type} {entity_id} not found")
        return record

    def get_version_content(
        self,
        entity_type: str,
        entity_id: str,
        version_number: int,
    ) -> dict[str, Any]:
        """The exact snapshot stored for a version."""
        return self.get_version(entity_type, entity_id, version_number).snapshot

    def compare_versions(
        self,
        entity_type: str,
        entity_id: str,
        version_a: int,
        version_b: int,
    ) -> list[FieldChange]:
        """Fields that changed going from version_a to version_b."""
        before = self.get_version_content(entity_type, entity_id, version_a)
        after = self.get_version_content(entity_type, entity_id, version_b)
        return diff_snapshots(before, after)
