from datetime import datetime
from typing import Any

from content_lifecycle.domain.entities import (
    ContentItem,
    ContentStatus,
    LocaleVariant,
    TranslationStatus,
)
from content_lifecycle.domain.errors import InvalidTransition, ValidationError

# from -> allowed targets. "rejected" edits and moves exactly like "draft".
TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"review", "scheduled", "published"}),
    "rejected": frozenset({"review", "scheduled", "published"}),
    "review": frozenset({"scheduled", "published", "rejected"}),
    "scheduled": frozenset({"published", "draft", "review"}),
    "published": frozenset({"archived"}),
    "archived": frozenset({"draft"}),
}

# Targets that must pass the quality gate before the transition commits.
GATED_TARGETS = frozenset({"published"})

VARIANT_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"review", "published"}),
    "review": frozenset({"draft", "published"}),
    "published": frozenset({"draft", "review"}),
}


def allowed_transitions(current: ContentStatus) -> list[str]:
    return sorted(TRANSITIONS.get(current, frozenset()))


def can_transition(
    current: ContentStatus,
    new: ContentStatus,
    scheduled_at: datetime | None = None,
    now: datetime | None = None,
) -> bool:
    """
    Determine if a state transition is allowed by the table.

    The quality gate is not checked here; see GATED_TARGETS.
    """
    if new not in TRANSITIONS.get(current, frozenset()):
        return False

    if new == "scheduled":
        # Must have a future publish time
        if not scheduled_at or not now:
            return False
        return scheduled_at > now

    return True


def transition(
    item: ContentItem,
    new_status: ContentStatus,
    now: datetime,
    scheduled_at: datetime | None = None,
    scheduled_locale: str | None = None,
) -> ContentItem:
    """
    Return a NEW ContentItem with the updated status and timestamps.

    Raises InvalidTransition if the pair is not in the table and
    ValidationError if a schedule time is missing or not in the future.
    """
    if new_status not in TRANSITIONS.get(item.status, frozenset()):
        raise InvalidTransition(item.status, new_status)

    if new_status == "scheduled" and not can_transition(
        item.status, new_status, scheduled_at, now
    ):
        raise ValidationError("Schedule date must be in the future", field="scheduleDate")

    is_scheduled = new_status == "scheduled"
    updates: dict[str, Any] = {
        "status": new_status,
        "updated_at": now,
        # scheduled_at only survives while the item is scheduled
        "scheduled_at": scheduled_at if is_scheduled else None,
        "scheduled_locale": (scheduled_locale or item.default_locale) if is_scheduled else None,
    }

    if new_status == "published":
        updates["published_at"] = now
        updates["archived_at"] = None
    elif new_status == "rejected":
        updates["rejected_at"] = now
    elif new_status == "archived":
        updates["archived_at"] = now
    elif new_status == "draft" and item.status == "archived":
        updates["archived_at"] = None

    return item.model_copy(update=updates)


def transition_variant(
    item: ContentItem,
    variant: LocaleVariant,
    new_status: TranslationStatus,
    now: datetime,
) -> LocaleVariant:
    """
    Return a NEW LocaleVariant with the updated translation status.

    A variant may only become published while its parent is published.
    """
    if new_status not in VARIANT_TRANSITIONS.get(variant.translation_status, frozenset()):
        raise InvalidTransition(variant.translation_status, new_status)

    if new_status == "published" and item.status != "published":
        raise InvalidTransition(variant.translation_status, new_status)

    return variant.model_copy(update={"translation_status": new_status, "updated_at": now})
