"""
Authorization capability.

Authorization policy is external: an actor either may perform a permission
on an item or may not. The workflow only asks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from content_lifecycle.domain.entities import Actor, ContentItem


class AuthorizationPort(Protocol):
    def is_allowed(
        self,
        actor: Actor,
        permission: str,
        item: ContentItem | None = None,
    ) -> bool:
        """Check if actor may perform permission (optionally on item)."""
        ...
