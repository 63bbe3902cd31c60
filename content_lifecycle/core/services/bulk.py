"""
BulkOperationProcessor - apply one action to many content items.

Each id is processed independently; partial success is the normal outcome.
publish/archive/reject go through the state machine, delete bypasses it
(irreversible, audited) and duplicate creates new drafts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, get_args
from uuid import UUID

from content_lifecycle.domain.errors import LifecycleError, ValidationError

if TYPE_CHECKING:
    from content_lifecycle.core.services.audit import ClientMeta
    from content_lifecycle.core.services.lifecycle import ContentLifecycleService
    from content_lifecycle.domain.entities import Actor

logger = logging.getLogger(__name__)

BulkAction = Literal["publish", "archive", "reject", "delete", "duplicate"]
BULK_ACTIONS: tuple[str, ...] = get_args(BulkAction)

DEFAULT_MAX_IDS = 100


@dataclass(frozen=True)
class BulkItemError:
    content_id: UUID
    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": str(self.content_id), "code": self.code, "message": self.message}


@dataclass(frozen=True)
class BulkResult:
    """count is the number of ids the action succeeded for."""

    action: str
    count: int
    errors: list[BulkItemError] = field(default_factory=list)
    created_ids: list[UUID] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "action": self.action,
            "errors": [e.to_dict() for e in self.errors],
            "createdIds": [str(i) for i in self.created_ids],
        }


class BulkOperationProcessor:
    def __init__(
        self,
        lifecycle: ContentLifecycleService,
        max_ids: int = DEFAULT_MAX_IDS,
    ) -> None:
        self._lifecycle = lifecycle
        self._max_ids = max_ids

    def apply(
        self,
        action: str,
        ids: list[UUID],
        actor: Actor,
        client_meta: ClientMeta | None = None,
    ) -> BulkResult:
        if action not in BULK_ACTIONS:
            raise ValidationError(
                f"Unknown bulk action '{action}'; expected one of {', '.join(BULK_ACTIONS)}",
                field="action",
            )
        if not ids:
            raise ValidationError("No ids given", field="ids")
        if len(ids) > self._max_ids:
            raise ValidationError(
                f"Too many ids ({len(ids)}); at most {self._max_ids} per request",
                field="ids",
            )

        count = 0
        errors: list[BulkItemError] = []
        created: list[UUID] = []

        # Duplicate ids in one request are processed once.
        for content_id in dict.fromkeys(ids):
            try:
                new_id = self._apply_one(action, content_id, actor, client_meta)
            except LifecycleError as e:
                errors.append(BulkItemError(content_id=content_id, code=e.code, message=e.message))
                continue
            except Exception as e:
                logger.warning("Bulk %s failed on %s", action, content_id, exc_info=True)
                errors.append(
                    BulkItemError(
                        content_id=content_id,
                        code="internal_error",
                        message=str(e) or type(e).__name__,
                    )
                )
                continue
            count += 1
            if new_id is not None:
                created.append(new_id)

        logger.info("Bulk %s: %d succeeded, %d failed", action, count, len(errors))
        return BulkResult(action=action, count=count, errors=errors, created_ids=created)

    def _apply_one(
        self,
        action: str,
        content_id: UUID,
        actor: Actor,
        client_meta: ClientMeta | None,
    ) -> UUID | None:
        if action == "publish":
            self._lifecycle.publish(content_id, actor, client_meta=client_meta)
        elif action == "archive":
            self._lifecycle.archive(content_id, actor, client_meta=client_meta)
        elif action == "reject":
            self._lifecycle.reject(content_id, actor, client_meta=client_meta)
        elif action == "delete":
            self._lifecycle.delete(content_id, actor, client_meta=client_meta)
        elif action == "duplicate":
            return self._lifecycle.duplicate(content_id, actor, client_meta=client_meta).id
        return None
