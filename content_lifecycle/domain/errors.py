"""
Lifecycle error taxonomy.

Every error carries a stable ``code`` string and a human-readable message.
The HTTP layer maps these onto status codes; core services only raise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from content_lifecycle.core.services.quality import QualityReport


class LifecycleError(Exception):
    """Base class for all content lifecycle errors."""

    code = "lifecycle_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(LifecycleError):
    """Malformed input, e.g. a missing or past schedule date."""

    code = "validation_error"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class QualityGateFailed(LifecycleError):
    code = "quality_gate_failed"

    def __init__(self, report: QualityReport, message: str = "Content failed the quality gate") -> None:
        self.report = report
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["report"] = self.report.to_dict()
        return data


class InvalidTransition(LifecycleError):
    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition from {from_status} to {to_status}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["from"] = self.from_status
        data["to"] = self.to_status
        return data


class ConcurrentModification(LifecycleError):
    """The optimistic status check lost a race with another writer."""

    code = "concurrent_modification"

    def __init__(self, item_id: Any, expected_status: str) -> None:
        self.item_id = item_id
        self.expected_status = expected_status
        super().__init__(
            f"Content {item_id} is no longer in status '{expected_status}'; reload and retry"
        )


class NotFound(LifecycleError):
    code = "not_found"


class Unauthorized(LifecycleError):
    code = "unauthorized"

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class Forbidden(LifecycleError):
    code = "forbidden"

    def __init__(self, permission: str) -> None:
        self.permission = permission
        super().__init__(f"Actor is not allowed to perform '{permission}'")


class DownstreamNotificationFailed(LifecycleError):
    """Cache invalidation failed. Logged only, never surfaced to callers."""

    code = "downstream_notification_failed"


class InternalError(LifecycleError):
    code = "internal_error"

    def __init__(self, request_id: str, message: str = "Internal server error") -> None:
        self.request_id = request_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["request_id"] = self.request_id
        return data
