"""
Audit log read surface.

Filters by entity, actor, action and time range, newest first, with the
unpaginated total for pagers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from content_lifecycle.api.deps import get_audit_service, require_permission
from content_lifecycle.api.schemas import AuditEntryResponse, AuditLogResponse
from content_lifecycle.core.services.audit import (
    AuditAction,
    AuditEntry,
    AuditQuery,
    AuditService,
    EntityType,
)
from content_lifecycle.domain.entities import Actor
from content_lifecycle.domain.errors import ValidationError

router = APIRouter()


def parse_datetime(value: str | None, field: str) -> datetime | None:
    """Parse an ISO datetime; naive values are UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid datetime: {value}", field=field) from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _entry_response(entry: AuditEntry) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id,
        timestamp=entry.timestamp,
        action=entry.action.value,
        entity_type=entry.entity_type.value,
        entity_id=entry.entity_id,
        actor_id=entry.actor_id,
        description=entry.description,
        changes=entry.changes,
        client_meta=entry.client_meta,
    )


@router.get("", response_model=AuditLogResponse)
def list_audit_logs(
    entity_type: str | None = Query(default=None, alias="entityType"),
    entity_id: str | None = Query(default=None, alias="entityId"),
    actor_id: UUID | None = Query(default=None, alias="actorId"),
    action: str | None = Query(default=None),
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(require_permission("audit:read")),
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    try:
        entity_filter = EntityType(entity_type) if entity_type else None
    except ValueError:
        raise ValidationError(f"Unknown entity type: {entity_type}", field="entityType") from None
    try:
        action_filter = AuditAction(action) if action else None
    except ValueError:
        raise ValidationError(f"Unknown action: {action}", field="action") from None

    page = audit.get_logs(
        AuditQuery(
            entity_type=entity_filter,
            entity_id=entity_id,
            actor_id=actor_id,
            action=action_filter,
            start_time=parse_datetime(start, "start"),
            end_time=parse_datetime(end, "end"),
            limit=limit,
            offset=offset,
        )
    )
    return AuditLogResponse(
        entries=[_entry_response(e) for e in page.entries],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )
