"""
AuditService - append-only record of administrative actions.

Key behaviors:
- Who did what, to what, when (actor, action, entity, timestamp)
- Written after the business mutation it accompanies has committed
- Durable before log() returns
- Immutable entries (no update/delete)
- Query by entity, actor, action, time range with pagination

A crash between a committed transition and its audit write loses that one
audit record. The entity state and its version snapshot are unaffected.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from content_lifecycle.core.ports.db import AuditRepoPort
    from content_lifecycle.core.ports.time import TimePort
    from content_lifecycle.domain.entities import Actor

logger = logging.getLogger(__name__)

# --- Enums ---


class AuditAction(str, Enum):
    """Audit action types."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SUBMIT_REVIEW = "submit_review"
    PUBLISH = "publish"
    SCHEDULE = "schedule"
    UNSCHEDULE = "unschedule"
    REJECT = "reject"
    ARCHIVE = "archive"
    RESTORE = "restore"
    DUPLICATE = "duplicate"
    RESTORE_VERSION = "restore_version"
    VARIANT_STATUS = "variant_status"


class EntityType(str, Enum):
    """Entity types that can be audited."""

    CONTENT_ITEM = "content_item"
    LOCALE_VARIANT = "locale_variant"
    SYSTEM = "system"


# --- Configuration ---


@dataclass(frozen=True)
class AuditConfig:
    """Audit logging configuration."""

    enabled: bool = True
    max_changes_bytes: int = 10000  # Max serialized change payload


DEFAULT_CONFIG = AuditConfig()


# --- Models ---


@dataclass(frozen=True)
class ClientMeta:
    """Request context captured alongside an action."""

    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "request_id": self.request_id,
        }


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit log entry."""

    id: UUID
    timestamp: datetime
    action: AuditAction
    entity_type: EntityType
    entity_id: str | None
    actor_id: UUID | None  # None for the scheduler
    description: str
    changes: dict[str, Any] | None = None
    client_meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditQuery:
    """Query parameters for audit log."""

    entity_type: EntityType | None = None
    entity_id: str | None = None
    actor_id: UUID | None = None
    action: AuditAction | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    limit: int = 100
    offset: int = 0


@dataclass(frozen=True)
class AuditPage:
    entries: list[AuditEntry]
    total: int
    limit: int
    offset: int


class DefaultTimePort:
    """Default time provider."""

    def now_utc(self) -> datetime:
        return datetime.now(UTC)


# --- Audit Service ---


class AuditService:
    """Records and queries audit log entries."""

    def __init__(
        self,
        repo: AuditRepoPort,
        time_port: TimePort | None = None,
        config: AuditConfig | None = None,
    ) -> None:
        self._repo = repo
        self._time = time_port or DefaultTimePort()
        self._config = config or DEFAULT_CONFIG

    def log(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str | None = None,
        changes: dict[str, Any] | None = None,
        actor: Actor | None = None,
        client_meta: ClientMeta | None = None,
        description: str = "",
    ) -> AuditEntry | None:
        """
        Create an audit log entry.

        Returns None if logging is disabled.
        """
        if not self._config.enabled:
            return None

        entry = AuditEntry(
            id=uuid4(),
            timestamp=self._time.now_utc(),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor.id if actor else None,
            description=description or self._generate_description(action, entity_type, entity_id),
            changes=self._bound_changes(changes),
            client_meta=client_meta.to_dict() if client_meta else {},
        )

        return self._repo.save(entry)

    def _generate_description(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str | None,
    ) -> str:
        """Generate default description."""
        entity_ref = f"{entity_type.value}"
        if entity_id:
            entity_ref += f" {entity_id}"
        return f"{action.value.replace('_', ' ').title()} {entity_ref}"

    def _bound_changes(self, changes: dict[str, Any] | None) -> dict[str, Any] | None:
        if changes is None:
            return None
        size = len(json.dumps(changes, default=str))
        if size <= self._config.max_changes_bytes:
            return changes
        logger.warning("Audit change payload truncated (%d bytes)", size)
        return {"truncated": True, "keys": sorted(changes.keys())}

    def get(self, entry_id: UUID) -> AuditEntry | None:
        """Get entry by ID."""
        return self._repo.get_by_id(entry_id)

    def get_logs(self, query: AuditQuery) -> AuditPage:
        """Query audit entries newest first, with the unpaginated total."""
        entries = self._repo.query(query)
        total = self._repo.count(query)
        return AuditPage(entries=entries, total=total, limit=query.limit, offset=query.offset)

    def get_for_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """Get audit trail for a specific entity."""
        query = AuditQuery(entity_type=entity_type, entity_id=entity_id, limit=limit)
        return self._repo.query(query)

    def get_recent(
        self,
        hours: int = 24,
        limit: int = 100,
    ) -> list[AuditEntry]:
        """Get recent audit entries."""
        start_time = self._time.now_utc() - timedelta(hours=hours)
        return self._repo.query(AuditQuery(start_time=start_time, limit=limit))
