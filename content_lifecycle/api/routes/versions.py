"""
Version history routes.

History is read by entity id only, so versions of a deleted item stay
readable.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from content_lifecycle.api.deps import (
    get_client_meta,
    get_current_actor,
    get_lifecycle_service,
    get_version_service,
)
from content_lifecycle.api.schemas import (
    CompareResponse,
    ContentResponse,
    FieldChangeResponse,
    VersionResponse,
)
from content_lifecycle.core.services.audit import ClientMeta
from content_lifecycle.core.services.lifecycle import ContentLifecycleService
from content_lifecycle.core.services.versions import VersionService
from content_lifecycle.domain.entities import CONTENT_ITEM_ENTITY, Actor, VersionRecord

router = APIRouter()


def _version_response(record: VersionRecord, include_snapshot: bool = False) -> VersionResponse:
    return VersionResponse(
        id=record.id,
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        version_number=record.version_number,
        author_id=record.author_id,
        message=record.message,
        created_at=record.created_at,
        snapshot=record.snapshot if include_snapshot else None,
    )


@router.get("/{content_id}/versions", response_model=list[VersionResponse])
def list_versions(
    content_id: UUID,
    limit: int = Query(default=50, ge=1, le=500),
    actor: Actor = Depends(get_current_actor),
    versions: VersionService = Depends(get_version_service),
) -> Any:
    """Newest first."""
    history = versions.get_history(CONTENT_ITEM_ENTITY, str(content_id), limit)
    return [_version_response(record) for record in history]


@router.get("/{content_id}/versions/compare", response_model=CompareResponse)
def compare_versions(
    content_id: UUID,
    a: int = Query(..., ge=1),
    b: int = Query(..., ge=1),
    actor: Actor = Depends(get_current_actor),
    versions: VersionService = Depends(get_version_service),
) -> Any:
    changes = versions.compare_versions(CONTENT_ITEM_ENTITY, str(content_id), a, b)
    return CompareResponse(
        version_a=a,
        version_b=b,
        changes=[
            FieldChangeResponse(path=c.path, before=c.before, after=c.after) for c in changes
        ],
    )


@router.get("/{content_id}/versions/{version_number}", response_model=VersionResponse)
def get_version(
    content_id: UUID,
    version_number: int,
    actor: Actor = Depends(get_current_actor),
    versions: VersionService = Depends(get_version_service),
) -> Any:
    record = versions.get_version(CONTENT_ITEM_ENTITY, str(content_id), version_number)
    return _version_response(record, include_snapshot=True)


@router.post("/{content_id}/versions/{version_number}/restore", response_model=ContentResponse)
def restore_version(
    content_id: UUID,
    version_number: int,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.restore_version(content_id, version_number, actor, client_meta)
    return ContentResponse.from_item(item)
