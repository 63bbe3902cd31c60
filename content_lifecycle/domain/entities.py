from datetime import UTC, datetime
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

# --- Enums / Literals ---
ContentType = Literal["article", "listing", "page"]
ContentStatus = Literal["draft", "review", "scheduled", "published", "archived", "rejected"]
TranslationStatus = Literal["draft", "review", "published"]
Severity = Literal["low", "medium", "high"]

CONTENT_ITEM_ENTITY = "content_item"


def utc_now() -> datetime:
    return datetime.now(UTC)


# --- Actors ---


class Actor(BaseModel):
    """Whoever drives a transition. The scheduler uses SYSTEM_ACTOR."""

    id: UUID | None = None
    roles: list[str] = Field(default_factory=list)

    @property
    def is_system(self) -> bool:
        return self.id is None and "system" in self.roles


SYSTEM_ACTOR = Actor(id=None, roles=["system"])


# --- Content ---


class LocaleVariant(BaseModel):
    content_id: UUID
    locale: str
    title: str = ""
    body: str = ""
    excerpt: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    translation_status: TranslationStatus = "draft"
    quality_score: int | None = None
    updated_at: datetime = Field(default_factory=utc_now)


class ContentItem(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    content_type: ContentType = "article"
    slug: str
    status: ContentStatus = "draft"
    default_locale: str = "en"

    scheduled_at: datetime | None = None
    scheduled_locale: str | None = None
    published_at: datetime | None = None
    rejected_at: datetime | None = None
    archived_at: datetime | None = None

    # Cache of the last quality evaluation; the evaluator is the source of truth.
    quality_score: int | None = None
    quality_issues: list[dict[str, Any]] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    # Bumped on every committed write; the optimistic check compares it.
    revision: int = 0

    variants: list[LocaleVariant] = Field(default_factory=list)

    def get_variant(self, locale: str) -> LocaleVariant | None:
        for variant in self.variants:
            if variant.locale == locale:
                return variant
        return None

    def snapshot(self) -> dict[str, Any]:
        """Field values captured into a VersionRecord."""
        return self.model_dump(
            mode="json",
            exclude={"quality_issues", "created_at", "revision"},
        )


# --- History ---


class VersionRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    entity_type: str
    entity_id: str
    version_number: int
    snapshot: dict[str, Any]
    author_id: UUID | None = None
    message: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}
