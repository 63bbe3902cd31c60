"""
ContentLifecycleService - drives content items through their workflow.

Every status change goes through the transition table in domain.state and is
committed as an optimistic compare-and-set on the stored status. After the
commit, in order:

1. a version snapshot of the item and its variants
2. an audit entry
3. a best-effort cache-invalidation notification

Only the "published" target is gated by the quality evaluator. Notification
failures are logged and never undo a transition.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from content_lifecycle.core.ports.notify import InvalidationEvent
from content_lifecycle.core.services.audit import AuditAction, EntityType
from content_lifecycle.core.services.quality import QualityFields, QualityGate, QualityReport
from content_lifecycle.domain.entities import (
    CONTENT_ITEM_ENTITY,
    SYSTEM_ACTOR,
    Actor,
    ContentItem,
    ContentStatus,
    ContentType,
    LocaleVariant,
    TranslationStatus,
)
from content_lifecycle.domain.errors import (
    ConcurrentModification,
    DownstreamNotificationFailed,
    Forbidden,
    InvalidTransition,
    NotFound,
    QualityGateFailed,
    ValidationError,
)
from content_lifecycle.domain.state import TRANSITIONS, transition, transition_variant

if TYPE_CHECKING:
    from content_lifecycle.core.ports.auth import AuthorizationPort
    from content_lifecycle.core.ports.db import ContentRepoPort
    from content_lifecycle.core.ports.notify import CacheInvalidationPort
    from content_lifecycle.core.ports.time import TimePort
    from content_lifecycle.core.services.audit import AuditService, ClientMeta
    from content_lifecycle.core.services.versions import VersionService

logger = logging.getLogger(__name__)

EDITABLE_VARIANT_FIELDS = frozenset(
    {"title", "body", "excerpt", "meta_title", "meta_description"}
)

ALL_STATUSES: tuple[ContentStatus, ...] = (
    "draft",
    "review",
    "scheduled",
    "published",
    "archived",
    "rejected",
)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _replace_variant(item: ContentItem, variant: LocaleVariant) -> list[LocaleVariant]:
    variants = [v for v in item.variants if v.locale != variant.locale]
    variants.append(variant)
    return sorted(variants, key=lambda v: v.locale)


class ContentLifecycleService:
    """Workflow operations on content items."""

    def __init__(
        self,
        content_repo: ContentRepoPort,
        versions: VersionService,
        audit: AuditService,
        gate: QualityGate,
        authorizer: AuthorizationPort,
        notifier: CacheInvalidationPort | None = None,
        time_port: TimePort | None = None,
    ) -> None:
        self._repo = content_repo
        self._versions = versions
        self._audit = audit
        self._gate = gate
        self._authorizer = authorizer
        self._notifier = notifier
        self._time = time_port

    def _now_utc(self) -> datetime:
        if self._time:
            return self._time.now_utc()
        return datetime.now(UTC)

    # --- Reads ---

    def get_item(self, item_id: UUID) -> ContentItem:
        item = self._repo.get_by_id(item_id)
        if item is None:
            raise NotFound(f"Content {item_id} not found")
        return item

    def evaluate_quality(self, item_id: UUID, locale: str | None = None) -> QualityReport:
        """Evaluate one locale and refresh the cached score on the item."""
        item = self.get_item(item_id)
        variant = self._require_variant(item, locale or item.default_locale)
        report = self._gate.evaluate(QualityFields.from_variant(item, variant))
        self._repo.update_quality(item.id, report.score, [i.to_dict() for i in report.issues])
        return report

    def workflow_stats(self) -> dict[str, int]:
        """Item count per status; statuses with no items report 0."""
        counts = self._repo.count_by_status()
        return {status: counts.get(status, 0) for status in ALL_STATUSES}

    # --- Authoring ---

    def create_item(
        self,
        slug: str,
        actor: Actor,
        content_type: ContentType = "article",
        locale: str = "en",
        title: str = "",
        body: str = "",
        excerpt: str | None = None,
        meta_title: str | None = None,
        meta_description: str | None = None,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """Create a new draft with one locale variant (version 1)."""
        self._authorize(actor, "content:edit")

        slug = (slug or "").strip()
        if not slug:
            raise ValidationError("Slug is required", field="slug")
        if self._repo.slug_exists(slug):
            raise ValidationError(f"Slug '{slug}' already exists", field="slug")

        now = self._now_utc()
        item_id = uuid4()
        item = ContentItem(
            id=item_id,
            content_type=content_type,
            slug=slug,
            status="draft",
            default_locale=locale,
            created_at=now,
            updated_at=now,
            variants=[
                LocaleVariant(
                    content_id=item_id,
                    locale=locale,
                    title=title,
                    body=body,
                    excerpt=excerpt,
                    meta_title=meta_title,
                    meta_description=meta_description,
                    updated_at=now,
                )
            ],
        )
        created = self._repo.create(item)
        self._record(
            created,
            AuditAction.CREATE,
            actor,
            "Created",
            client_meta,
            changes={"slug": slug, "locale": locale},
        )
        return created

    def update_variant(
        self,
        item_id: UUID,
        locale: str,
        fields: dict[str, Any],
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """Edit (or add) the fields of one locale variant. Status is untouched."""
        item = self.get_item(item_id)
        self._authorize(actor, "content:edit", item)

        unknown = set(fields) - EDITABLE_VARIANT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        if item.status == "archived":
            raise ValidationError("Archived content cannot be edited; restore it first")

        now = self._now_utc()
        current = item.get_variant(locale)
        if current is None:
            variant = LocaleVariant(content_id=item.id, locale=locale, updated_at=now, **fields)
        else:
            variant = current.model_copy(update={**fields, "updated_at": now})

        updated = item.model_copy(
            update={"variants": _replace_variant(item, variant), "updated_at": now}
        )
        return self._commit(
            item,
            updated,
            AuditAction.UPDATE,
            actor,
            f"Edited {locale} variant",
            client_meta,
            changes={"locale": locale, "fields": sorted(fields)},
        )

    # --- Transitions ---

    def submit_for_review(
        self,
        item_id: UUID,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        item = self.get_item(item_id)
        self._authorize(actor, "content:edit", item)
        updated = transition(item, "review", self._now_utc())
        return self._commit(
            item, updated, AuditAction.SUBMIT_REVIEW, actor, "Submitted for review", client_meta
        )

    def publish(
        self,
        item_id: UUID,
        actor: Actor,
        locale: str | None = None,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """
        Publish now.

        Raises InvalidTransition if the current status cannot publish and
        QualityGateFailed (with the full report) if the locale fails the gate.
        """
        item = self.get_item(item_id)
        self._authorize(actor, "content:publish", item)
        return self._publish(item, locale, actor, "Published", client_meta)

    def publish_scheduled(self, item_id: UUID, now: datetime | None = None) -> ContentItem:
        """
        Publish a due scheduled item as the system actor.

        The item must still be scheduled and due when re-read; otherwise
        someone else moved it first and this is a conflict.
        """
        now = now or self._now_utc()
        item = self.get_item(item_id)
        if item.status != "scheduled" or item.scheduled_at is None or item.scheduled_at > now:
            raise ConcurrentModification(item.id, "scheduled")
        return self._publish(item, item.scheduled_locale, SYSTEM_ACTOR, "Published on schedule")

    def schedule(
        self,
        item_id: UUID,
        scheduled_at: datetime | None,
        actor: Actor,
        locale: str | None = None,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """Schedule for a future publish. The gate is evaluated at publish time."""
        item = self.get_item(item_id)
        self._authorize(actor, "content:schedule", item)

        if scheduled_at is None:
            raise ValidationError("Schedule date is required", field="scheduleDate")
        if locale is not None:
            self._require_variant(item, locale)

        when = _as_utc(scheduled_at)
        updated = transition(item, "scheduled", self._now_utc(), when, locale)
        return self._commit(
            item,
            updated,
            AuditAction.SCHEDULE,
            actor,
            f"Scheduled for {when.isoformat()}",
            client_meta,
            changes={"scheduled_at": when.isoformat(), "locale": updated.scheduled_locale},
        )

    def unschedule(
        self,
        item_id: UUID,
        actor: Actor,
        to_status: ContentStatus = "draft",
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        item = self.get_item(item_id)
        self._authorize(actor, "content:schedule", item)
        if to_status not in ("draft", "review"):
            raise ValidationError("Unscheduled content returns to draft or review", field="status")
        if item.status != "scheduled":
            raise InvalidTransition(item.status, to_status)

        updated = transition(item, to_status, self._now_utc())
        return self._commit(
            item,
            updated,
            AuditAction.UNSCHEDULE,
            actor,
            f"Unscheduled to {to_status}",
            client_meta,
            changes={"scheduled_at": item.scheduled_at.isoformat() if item.scheduled_at else None},
        )

    def reject(
        self,
        item_id: UUID,
        actor: Actor,
        reason: str = "",
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        item = self.get_item(item_id)
        self._authorize(actor, "content:review", item)
        updated = transition(item, "rejected", self._now_utc())
        message = f"Rejected: {reason}" if reason else "Rejected"
        return self._commit(
            item,
            updated,
            AuditAction.REJECT,
            actor,
            message,
            client_meta,
            changes={"reason": reason} if reason else None,
        )

    def archive(
        self,
        item_id: UUID,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        item = self.get_item(item_id)
        self._authorize(actor, "content:archive", item)
        updated = transition(item, "archived", self._now_utc())
        return self._commit(item, updated, AuditAction.ARCHIVE, actor, "Archived", client_meta)

    def restore(
        self,
        item_id: UUID,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """Bring an archived item back as a draft."""
        item = self.get_item(item_id)
        self._authorize(actor, "content:archive", item)
        updated = transition(item, "draft", self._now_utc())
        return self._commit(
            item, updated, AuditAction.RESTORE, actor, "Restored from archive", client_meta
        )

    def set_variant_status(
        self,
        item_id: UUID,
        locale: str,
        new_status: TranslationStatus,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """
        Move one locale variant through its translation workflow.

        Publishing a variant requires a published parent and a passing gate
        for that variant.
        """
        item = self.get_item(item_id)
        permission = "content:publish" if new_status == "published" else "content:edit"
        self._authorize(actor, permission, item)

        variant = self._require_variant(item, locale)
        now = self._now_utc()
        moved = transition_variant(item, variant, new_status, now)

        if new_status == "published":
            report = self._gate.evaluate(QualityFields.from_variant(item, variant))
            if not report.passed:
                logger.info("Variant %s/%s failed quality gate (score %d)", item.id, locale, report.score)
                raise QualityGateFailed(report)
            moved = moved.model_copy(update={"quality_score": report.score})

        updated = item.model_copy(
            update={"variants": _replace_variant(item, moved), "updated_at": now}
        )
        return self._commit(
            item,
            updated,
            AuditAction.VARIANT_STATUS,
            actor,
            f"Variant {locale} moved to {new_status}",
            client_meta,
            changes={"locale": locale, "from": variant.translation_status, "to": new_status},
        )

    # --- History ---

    def restore_version(
        self,
        item_id: UUID,
        version_number: int,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """
        Write a snapshot's variant fields back as a new version.

        Status and translation statuses are left alone; only content moves.
        """
        item = self.get_item(item_id)
        self._authorize(actor, "content:edit", item)
        if item.status == "archived":
            raise ValidationError("Archived content cannot be edited; restore it first")

        snapshot = self._versions.get_version_content(
            CONTENT_ITEM_ENTITY, str(item.id), version_number
        )
        now = self._now_utc()
        restored = item
        for data in snapshot.get("variants", []):
            fields = {k: data.get(k) for k in EDITABLE_VARIANT_FIELDS}
            current = restored.get_variant(data["locale"])
            if current is None:
                variant = LocaleVariant(
                    content_id=item.id, locale=data["locale"], updated_at=now, **fields
                )
            else:
                variant = current.model_copy(update={**fields, "updated_at": now})
            restored = restored.model_copy(
                update={"variants": _replace_variant(restored, variant)}
            )

        restored = restored.model_copy(update={"updated_at": now})
        return self._commit(
            item,
            restored,
            AuditAction.RESTORE_VERSION,
            actor,
            f"Restored version {version_number}",
            client_meta,
            changes={"version_number": version_number},
        )

    # --- Bulk-only primitives ---

    def duplicate(
        self,
        item_id: UUID,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        """Clone an item's variant fields into a new draft with a free slug."""
        source = self.get_item(item_id)
        self._authorize(actor, "content:edit", source)

        now = self._now_utc()
        new_id = uuid4()
        copy = ContentItem(
            id=new_id,
            content_type=source.content_type,
            slug=self._next_copy_slug(source.slug),
            status="draft",
            default_locale=source.default_locale,
            created_at=now,
            updated_at=now,
            variants=[
                v.model_copy(
                    update={
                        "content_id": new_id,
                        "translation_status": "draft",
                        "quality_score": None,
                        "updated_at": now,
                    }
                )
                for v in source.variants
            ],
        )
        created = self._repo.create(copy)
        self._record(
            created,
            AuditAction.DUPLICATE,
            actor,
            f"Duplicated from {source.slug}",
            client_meta,
            changes={"source_id": str(source.id)},
        )
        return created

    def delete(
        self,
        item_id: UUID,
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> None:
        """Hard delete, outside the state machine. History rows are kept."""
        item = self.get_item(item_id)
        self._authorize(actor, "content:delete", item)
        if not self._repo.delete(item.id):
            raise NotFound(f"Content {item_id} not found")

        self._audit.log(
            AuditAction.DELETE,
            EntityType.CONTENT_ITEM,
            str(item.id),
            changes={"slug": item.slug, "status": item.status},
            actor=actor,
            client_meta=client_meta,
            description=f"Deleted {item.slug}",
        )
        logger.info("Deleted content %s (%s)", item.id, item.slug)
        if item.status == "published":
            self._notify_safely(item, "delete")

    # --- Internals ---

    def _authorize(self, actor: Actor, permission: str, item: ContentItem | None = None) -> None:
        if actor.is_system:
            return
        if not self._authorizer.is_allowed(actor, permission, item):
            raise Forbidden(permission)

    def _require_variant(self, item: ContentItem, locale: str) -> LocaleVariant:
        variant = item.get_variant(locale)
        if variant is None:
            raise NotFound(f"Content {item.id} has no '{locale}' variant")
        return variant

    def _publish(
        self,
        item: ContentItem,
        locale: str | None,
        actor: Actor,
        message: str,
        client_meta: ClientMeta | None = None,
    ) -> ContentItem:
        if "published" not in TRANSITIONS.get(item.status, frozenset()):
            raise InvalidTransition(item.status, "published")

        locale = locale or item.default_locale
        variant = self._require_variant(item, locale)
        report = self._gate.evaluate(QualityFields.from_variant(item, variant))
        issues = [issue.to_dict() for issue in report.issues]

        if not report.passed:
            self._repo.update_quality(item.id, report.score, issues)
            logger.info("Content %s failed quality gate (score %d)", item.id, report.score)
            raise QualityGateFailed(report)

        now = self._now_utc()
        published_variant = variant.model_copy(
            update={
                "translation_status": "published",
                "quality_score": report.score,
                "updated_at": now,
            }
        )
        updated = transition(item, "published", now).model_copy(
            update={
                "variants": _replace_variant(item, published_variant),
                "quality_score": report.score,
                "quality_issues": issues,
            }
        )
        return self._commit(
            item,
            updated,
            AuditAction.PUBLISH,
            actor,
            f"{message} ({locale})",
            client_meta,
            changes={"locale": locale, "quality_score": report.score},
        )

    def _commit(
        self,
        before: ContentItem,
        after: ContentItem,
        action: AuditAction,
        actor: Actor,
        message: str,
        client_meta: ClientMeta | None = None,
        changes: dict[str, Any] | None = None,
    ) -> ContentItem:
        """
        Compare-and-set on status and revision, then version, audit and notify.

        Any write committed since `before` was read bumps the revision, so a
        stale read loses even when the status did not change.
        """
        after = after.model_copy(update={"revision": before.revision + 1})
        if not self._repo.compare_and_set_status(after, before.status, before.revision):
            current = self._repo.get_by_id(before.id)
            if current is None:
                raise NotFound(f"Content {before.id} not found")
            logger.warning(
                "Concurrent modification on %s: expected %s@r%d, found %s@r%d",
                before.id,
                before.status,
                before.revision,
                current.status,
                current.revision,
            )
            raise ConcurrentModification(before.id, before.status)

        audit_changes: dict[str, Any] = {"from": before.status, "to": after.status}
        if changes:
            audit_changes.update(changes)
        self._record(after, action, actor, message, client_meta, audit_changes)

        logger.info("Content %s: %s -> %s (%s)", after.id, before.status, after.status, action.value)
        if "published" in (before.status, after.status):
            self._notify_safely(after, action.value)
        return after

    def _record(
        self,
        item: ContentItem,
        action: AuditAction,
        actor: Actor,
        message: str,
        client_meta: ClientMeta | None,
        changes: dict[str, Any] | None = None,
    ) -> None:
        self._versions.create_version(
            CONTENT_ITEM_ENTITY, str(item.id), item.snapshot(), actor.id, message
        )
        self._audit.log(
            action,
            EntityType.CONTENT_ITEM,
            str(item.id),
            changes=changes,
            actor=actor,
            client_meta=client_meta,
            description=message,
        )

    def _notify_safely(self, item: ContentItem, action: str) -> None:
        if self._notifier is None:
            return
        event = InvalidationEvent(
            content_id=item.id,
            slug=item.slug,
            status=item.status,
            action=action,
            locales=tuple(v.locale for v in item.variants),
        )
        try:
            self._notifier.notify(event)
        except Exception as exc:
            failure = DownstreamNotificationFailed(f"Cache invalidation failed for {item.id}: {exc}")
            logger.warning("%s", failure.message, exc_info=True)

    def _next_copy_slug(self, slug: str) -> str:
        candidate = f"{slug}-copy"
        n = 2
        while self._repo.slug_exists(candidate):
            candidate = f"{slug}-copy-{n}"
            n += 1
        return candidate
