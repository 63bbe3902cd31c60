"""Tests for the content and locale-variant transition tables."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from content_lifecycle.domain.entities import ContentItem, LocaleVariant
from content_lifecycle.domain.errors import InvalidTransition, ValidationError
from content_lifecycle.domain.state import (
    TRANSITIONS,
    allowed_transitions,
    can_transition,
    transition,
    transition_variant,
)

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)
STATUSES = ["draft", "review", "scheduled", "published", "archived", "rejected"]
FORBIDDEN_PAIRS = [
    (current, target)
    for current in STATUSES
    for target in STATUSES
    if target not in TRANSITIONS[current]
]


def item(status: str = "draft", **kwargs) -> ContentItem:
    return ContentItem(slug="state-test", status=status, **kwargs)


class TestTable:
    def test_expected_edges(self) -> None:
        assert allowed_transitions("draft") == ["published", "review", "scheduled"]
        assert allowed_transitions("review") == ["published", "rejected", "scheduled"]
        assert allowed_transitions("scheduled") == ["draft", "published", "review"]
        assert allowed_transitions("published") == ["archived"]
        assert allowed_transitions("archived") == ["draft"]

    def test_rejected_moves_like_draft(self) -> None:
        assert TRANSITIONS["rejected"] == TRANSITIONS["draft"]

    @pytest.mark.parametrize(("current", "target"), FORBIDDEN_PAIRS)
    def test_pairs_outside_table_raise(self, current: str, target: str) -> None:
        with pytest.raises(InvalidTransition) as exc:
            transition(item(current), target, NOW, scheduled_at=NOW + timedelta(hours=1))
        assert exc.value.from_status == current
        assert exc.value.to_status == target


class TestScheduling:
    def test_requires_future_time(self) -> None:
        assert can_transition("draft", "scheduled", NOW + timedelta(seconds=1), NOW)
        assert not can_transition("draft", "scheduled", NOW, NOW)
        assert not can_transition("draft", "scheduled", NOW - timedelta(seconds=1), NOW)
        assert not can_transition("draft", "scheduled", None, NOW)

    @pytest.mark.parametrize("when", [None, NOW, NOW - timedelta(minutes=5)])
    def test_past_or_missing_time_is_validation_error(self, when) -> None:
        with pytest.raises(ValidationError) as exc:
            transition(item("draft"), "scheduled", NOW, scheduled_at=when)
        assert exc.value.field == "scheduleDate"

    def test_schedule_sets_time_and_locale(self) -> None:
        when = NOW + timedelta(hours=2)

        scheduled = transition(item("review"), "scheduled", NOW, scheduled_at=when, scheduled_locale="fr")

        assert scheduled.status == "scheduled"
        assert scheduled.scheduled_at == when
        assert scheduled.scheduled_locale == "fr"

    def test_schedule_defaults_locale(self) -> None:
        scheduled = transition(item("draft"), "scheduled", NOW, scheduled_at=NOW + timedelta(hours=1))

        assert scheduled.scheduled_locale == "en"

    @pytest.mark.parametrize("target", ["draft", "review", "published"])
    def test_leaving_scheduled_clears_schedule(self, target: str) -> None:
        scheduled = item("scheduled", scheduled_at=NOW + timedelta(hours=1), scheduled_locale="en")

        moved = transition(scheduled, target, NOW)

        assert moved.scheduled_at is None
        assert moved.scheduled_locale is None


class TestTimestamps:
    def test_publish_sets_published_at(self) -> None:
        published = transition(item("draft"), "published", NOW)

        assert published.published_at == NOW
        assert published.updated_at == NOW

    def test_reject_sets_rejected_at(self) -> None:
        assert transition(item("review"), "rejected", NOW).rejected_at == NOW

    def test_archive_and_restore(self) -> None:
        archived = transition(item("published"), "archived", NOW)
        assert archived.archived_at == NOW

        restored = transition(archived, "draft", NOW + timedelta(days=1))
        assert restored.archived_at is None
        assert restored.status == "draft"

    def test_original_is_not_mutated(self) -> None:
        original = item("draft")

        transition(original, "published", NOW)

        assert original.status == "draft"
        assert original.published_at is None


class TestVariantTransitions:
    def _variant(self, content_id, status="draft") -> LocaleVariant:
        return LocaleVariant(content_id=content_id, locale="fr", translation_status=status)

    def test_publish_requires_published_parent(self) -> None:
        parent = item("draft")
        variant = self._variant(parent.id)

        with pytest.raises(InvalidTransition):
            transition_variant(parent, variant, "published", NOW)

    def test_publish_with_published_parent(self) -> None:
        parent = item("published")

        moved = transition_variant(parent, self._variant(parent.id, "review"), "published", NOW)

        assert moved.translation_status == "published"
        assert moved.updated_at == NOW

    @pytest.mark.parametrize(
        "current,target",
        [("draft", "review"), ("review", "draft"), ("published", "draft"), ("published", "review")],
    )
    def test_other_moves_ignore_parent(self, current: str, target: str) -> None:
        parent = item("draft")

        moved = transition_variant(parent, self._variant(parent.id, current), target, NOW)

        assert moved.translation_status == target

    def test_same_status_is_invalid(self) -> None:
        parent = item("published")
        with pytest.raises(InvalidTransition):
            transition_variant(parent, self._variant(uuid4(), "draft"), "draft", NOW)
