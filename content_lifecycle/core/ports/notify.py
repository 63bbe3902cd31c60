"""
Downstream cache-invalidation port.

Notifications are best-effort. Callers never wait on delivery and a failure
never rolls back the transition that triggered it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID


@dataclass(frozen=True)
class InvalidationEvent:
    """Something public-facing about a content item changed."""

    content_id: UUID
    slug: str
    status: str
    action: str
    locales: tuple[str, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        return {
            "content_id": str(self.content_id),
            "slug": self.slug,
            "status": self.status,
            "action": self.action,
            "locales": list(self.locales),
        }


class CacheInvalidationPort(Protocol):
    def notify(self, event: InvalidationEvent) -> None:
        """Fire-and-forget. May raise; the caller swallows and logs."""
        ...
