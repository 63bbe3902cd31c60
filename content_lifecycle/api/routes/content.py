"""
Content workflow routes.

Create and edit content, move it through the lifecycle, and run bulk
actions. All routes need a bearer token; per-action permissions are checked
by the lifecycle service.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from content_lifecycle.api.deps import (
    get_bulk_processor,
    get_client_meta,
    get_current_actor,
    get_lifecycle_service,
    require_permission,
)
from content_lifecycle.api.schemas import (
    BulkRequest,
    ContentResponse,
    CreateContentRequest,
    PublishRequest,
    PublishResponse,
    QualityReportResponse,
    RejectRequest,
    ScheduleRequest,
    ScheduleResponse,
    TransitionResponse,
    UpdateVariantRequest,
    VariantStatusRequest,
)
from content_lifecycle.core.services.audit import ClientMeta
from content_lifecycle.core.services.bulk import BulkOperationProcessor
from content_lifecycle.core.services.lifecycle import ContentLifecycleService
from content_lifecycle.domain.entities import Actor, ContentItem

router = APIRouter()


def _transition_response(item: ContentItem, message: str) -> TransitionResponse:
    return TransitionResponse(content_item_id=item.id, status=item.status, message=message)


# --- Authoring ---


@router.post("", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
def create_content(
    request: CreateContentRequest,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.create_item(
        slug=request.slug,
        actor=actor,
        content_type=request.content_type,
        locale=request.locale,
        title=request.title,
        body=request.body,
        excerpt=request.excerpt,
        meta_title=request.meta_title,
        meta_description=request.meta_description,
        client_meta=client_meta,
    )
    return ContentResponse.from_item(item)


@router.post("/bulk")
def bulk_action(
    request: BulkRequest,
    actor: Actor = Depends(require_permission("content:bulk")),
    processor: BulkOperationProcessor = Depends(get_bulk_processor),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> dict[str, Any]:
    """
    Apply one action to many items.

    Always 200 once the request is valid; per-item failures are listed in
    `errors` and `count` is the number that succeeded.
    """
    result = processor.apply(request.action, request.ids, actor, client_meta)
    return result.to_dict()


@router.get("/{content_id}", response_model=ContentResponse)
def get_content(
    content_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
) -> Any:
    return ContentResponse.from_item(service.get_item(content_id))


@router.put("/{content_id}/locales/{locale}", response_model=ContentResponse)
def update_locale(
    content_id: UUID,
    locale: str,
    request: UpdateVariantRequest,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    fields = request.model_dump(exclude_unset=True)
    item = service.update_variant(content_id, locale, fields, actor, client_meta)
    return ContentResponse.from_item(item)


@router.get("/{content_id}/quality", response_model=QualityReportResponse)
def evaluate_quality(
    content_id: UUID,
    locale: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
) -> Any:
    return service.evaluate_quality(content_id, locale).to_dict()


# --- Transitions ---


@router.post("/{content_id}/publish", response_model=PublishResponse)
def publish_content(
    content_id: UUID,
    request: PublishRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    """
    Publish now.

    400 with the full quality report if a high-severity issue blocks it,
    409 if the current status cannot publish or another writer got there first.
    """
    locale = request.locale if request else None
    item = service.publish(content_id, actor, locale=locale, client_meta=client_meta)
    return PublishResponse(content_item_id=item.id, message="Content published")


@router.post("/{content_id}/schedule", response_model=ScheduleResponse)
def schedule_content(
    content_id: UUID,
    request: ScheduleRequest,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.schedule(
        content_id,
        request.schedule_date,
        actor,
        locale=request.locale,
        client_meta=client_meta,
    )
    if item.scheduled_at is None:
        raise RuntimeError(f"Content {item.id} scheduled without a publish time")
    return ScheduleResponse(
        content_item_id=item.id,
        scheduled_at=item.scheduled_at,
        message="Content scheduled",
    )


@router.delete("/{content_id}/schedule", response_model=TransitionResponse)
def unschedule_content(
    content_id: UUID,
    to_status: str = Query(default="draft", alias="toStatus"),
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.unschedule(content_id, actor, to_status=to_status, client_meta=client_meta)
    return _transition_response(item, "Content unscheduled")


@router.post("/{content_id}/review", response_model=TransitionResponse)
def submit_for_review(
    content_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.submit_for_review(content_id, actor, client_meta)
    return _transition_response(item, "Content submitted for review")


@router.post("/{content_id}/reject", response_model=TransitionResponse)
def reject_content(
    content_id: UUID,
    request: RejectRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    reason = request.reason if request else ""
    item = service.reject(content_id, actor, reason=reason, client_meta=client_meta)
    return _transition_response(item, "Content rejected")


@router.post("/{content_id}/archive", response_model=TransitionResponse)
def archive_content(
    content_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.archive(content_id, actor, client_meta)
    return _transition_response(item, "Content archived")


@router.post("/{content_id}/restore", response_model=TransitionResponse)
def restore_content(
    content_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.restore(content_id, actor, client_meta)
    return _transition_response(item, "Content restored to draft")


@router.post("/{content_id}/locales/{locale}/status", response_model=ContentResponse)
def set_locale_status(
    content_id: UUID,
    locale: str,
    request: VariantStatusRequest,
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
    client_meta: ClientMeta = Depends(get_client_meta),
) -> Any:
    item = service.set_variant_status(content_id, locale, request.status, actor, client_meta)
    return ContentResponse.from_item(item)
