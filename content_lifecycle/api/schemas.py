"""Request/response models. JSON keys are camelCase; snake_case is accepted on input."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from content_lifecycle.domain.entities import (
    ContentItem,
    ContentStatus,
    ContentType,
    TranslationStatus,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Content ---


class VariantResponse(CamelModel):
    locale: str
    title: str
    body: str
    excerpt: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    translation_status: TranslationStatus
    quality_score: int | None = None
    updated_at: datetime


class ContentResponse(CamelModel):
    id: UUID
    content_type: ContentType
    slug: str
    status: ContentStatus
    default_locale: str
    scheduled_at: datetime | None = None
    scheduled_locale: str | None = None
    published_at: datetime | None = None
    rejected_at: datetime | None = None
    archived_at: datetime | None = None
    quality_score: int | None = None
    quality_issues: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    revision: int = 0
    variants: list[VariantResponse] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: ContentItem) -> "ContentResponse":
        return cls.model_validate(item.model_dump())


class CreateContentRequest(CamelModel):
    slug: str
    content_type: ContentType = "article"
    locale: str = "en"
    title: str = ""
    body: str = ""
    excerpt: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None


class UpdateVariantRequest(CamelModel):
    title: str | None = None
    body: str | None = None
    excerpt: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None


class PublishRequest(CamelModel):
    locale: str | None = None


class PublishResponse(CamelModel):
    content_item_id: UUID
    message: str


class ScheduleRequest(CamelModel):
    locale: str | None = None
    schedule_date: datetime


class ScheduleResponse(CamelModel):
    content_item_id: UUID
    scheduled_at: datetime
    message: str


class RejectRequest(CamelModel):
    reason: str = ""


class VariantStatusRequest(CamelModel):
    status: TranslationStatus


class TransitionResponse(CamelModel):
    content_item_id: UUID
    status: ContentStatus
    message: str


class BulkRequest(CamelModel):
    action: str
    ids: list[UUID]


# --- Quality ---


class QualityIssueResponse(CamelModel):
    type: str
    severity: str
    message: str
    suggestion: str = ""


class QualityReportResponse(CamelModel):
    score: int
    passed: bool
    issues: list[QualityIssueResponse]


# --- Versions ---


class VersionResponse(CamelModel):
    id: UUID
    entity_type: str
    entity_id: str
    version_number: int
    author_id: UUID | None = None
    message: str
    created_at: datetime
    snapshot: dict[str, Any] | None = None


class FieldChangeResponse(CamelModel):
    path: str
    before: Any = None
    after: Any = None


class CompareResponse(CamelModel):
    version_a: int
    version_b: int
    changes: list[FieldChangeResponse]


# --- Audit ---


class AuditEntryResponse(CamelModel):
    id: UUID
    timestamp: datetime
    action: str
    entity_type: str
    entity_id: str | None = None
    actor_id: UUID | None = None
    description: str
    changes: dict[str, Any] | None = None
    client_meta: dict[str, Any] = Field(default_factory=dict)


class AuditLogResponse(CamelModel):
    entries: list[AuditEntryResponse]
    total: int
    limit: int
    offset: int


class WorkflowStatsResponse(CamelModel):
    counts: dict[str, int]
    total: int
