from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from content_lifecycle.api.deps import get_current_actor, get_lifecycle_service
from content_lifecycle.api.schemas import WorkflowStatsResponse
from content_lifecycle.core.services.lifecycle import ContentLifecycleService
from content_lifecycle.domain.entities import Actor

router = APIRouter()


@router.get("/stats", response_model=WorkflowStatsResponse)
def workflow_stats(
    actor: Actor = Depends(get_current_actor),
    service: ContentLifecycleService = Depends(get_lifecycle_service),
) -> Any:
    """Item count per lifecycle status, for the workflow dashboard."""
    counts = service.workflow_stats()
    return WorkflowStatsResponse(counts=counts, total=sum(counts.values()))
