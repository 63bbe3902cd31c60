from functools import lru_cache
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from content_lifecycle.api.auth_utils import decode_access_token
from content_lifecycle.app_shell.config import Settings, get_settings
from content_lifecycle.app_shell.wiring import Services, build_sqlite_services
from content_lifecycle.core.services.audit import AuditService, ClientMeta
from content_lifecycle.core.services.bulk import BulkOperationProcessor
from content_lifecycle.core.services.lifecycle import ContentLifecycleService
from content_lifecycle.core.services.scheduler import PublishSweeper
from content_lifecycle.core.services.versions import VersionService
from content_lifecycle.domain.entities import Actor
from content_lifecycle.domain.errors import Forbidden, Unauthorized
from content_lifecycle.rules.loader import load_rules
from content_lifecycle.rules.models import Rules


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


# --- Services ---
@lru_cache
def sqlite_services(db_path: str) -> Services:
    return build_sqlite_services(db_path, get_rules())


def get_services(settings: Settings = Depends(get_settings)) -> Services:
    return sqlite_services(settings.db_path)


def get_lifecycle_service(services: Services = Depends(get_services)) -> ContentLifecycleService:
    return services.lifecycle


def get_version_service(services: Services = Depends(get_services)) -> VersionService:
    return services.versions


def get_audit_service(services: Services = Depends(get_services)) -> AuditService:
    return services.audit


def get_sweeper(services: Services = Depends(get_services)) -> PublishSweeper:
    return services.sweeper


def get_bulk_processor(services: Services = Depends(get_services)) -> BulkOperationProcessor:
    return services.bulk


def get_sweep_secret(settings: Settings = Depends(get_settings)) -> str | None:
    return settings.sweep_secret


# --- Request context ---
def get_client_meta(request: Request) -> ClientMeta:
    return ClientMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        request_id=getattr(request.state, "request_id", None),
    )


# --- Auth ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise Unauthorized("Invalid token")

    try:
        actor_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise Unauthorized("Invalid token subject") from None

    roles = payload.get("roles") or []
    if not isinstance(roles, list):
        raise Unauthorized("Invalid roles claim")

    return Actor(id=actor_id, roles=[str(r) for r in roles])


def require_permission(permission: str):
    """Dependency factory: the current actor must hold `permission`."""

    def _check(
        actor: Actor = Depends(get_current_actor),
        services: Services = Depends(get_services),
    ) -> Actor:
        if not services.authorizer.is_allowed(actor, permission):
            raise Forbidden(permission)
        return actor

    return _check
