"""
Service wiring.

Builds the lifecycle, sweep and bulk services over one set of repositories.
The API, the CLI and the tests all compose services through here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from content_lifecycle.adapters.auth import PolicyAuthorizer
from content_lifecycle.adapters.clock import SystemClock
from content_lifecycle.adapters.memory import (
    InMemoryAuditRepo,
    InMemoryContentRepo,
    InMemoryVersionRepo,
)
from content_lifecycle.adapters.notifier import LoggingNotifier, WebhookCacheNotifier
from content_lifecycle.adapters.sqlite.repos import (
    SQLiteAuditRepo,
    SQLiteContentRepo,
    SQLiteVersionRepo,
)
from content_lifecycle.core.services.audit import AuditService
from content_lifecycle.core.services.bulk import BulkOperationProcessor
from content_lifecycle.core.services.lifecycle import ContentLifecycleService
from content_lifecycle.core.services.quality import QualityGate
from content_lifecycle.core.services.scheduler import PublishSweeper
from content_lifecycle.core.services.versions import VersionService
from content_lifecycle.rules.loader import audit_config, quality_config, sweep_config

if TYPE_CHECKING:
    from content_lifecycle.core.ports.auth import AuthorizationPort
    from content_lifecycle.core.ports.db import AuditRepoPort, ContentRepoPort, VersionRepoPort
    from content_lifecycle.core.ports.notify import CacheInvalidationPort
    from content_lifecycle.core.ports.time import TimePort
    from content_lifecycle.rules.models import Rules


@dataclass
class Services:
    rules: Rules
    content_repo: ContentRepoPort
    authorizer: AuthorizationPort
    versions: VersionService
    audit: AuditService
    lifecycle: ContentLifecycleService
    sweeper: PublishSweeper
    bulk: BulkOperationProcessor


def notifier_from_rules(rules: Rules) -> CacheInvalidationPort:
    url = rules.notifications.revalidate_url
    if url:
        return WebhookCacheNotifier(url, timeout_seconds=rules.notifications.timeout_seconds)
    return LoggingNotifier()


def build_services(
    rules: Rules,
    content_repo: ContentRepoPort,
    version_repo: VersionRepoPort,
    audit_repo: AuditRepoPort,
    clock: TimePort | None = None,
    notifier: CacheInvalidationPort | None = None,
    authorizer: AuthorizationPort | None = None,
) -> Services:
    clock = clock or SystemClock()
    authorizer = authorizer or PolicyAuthorizer(rules)
    versions = VersionService(version_repo, clock)
    audit = AuditService(audit_repo, clock, audit_config(rules))
    lifecycle = ContentLifecycleService(
        content_repo=content_repo,
        versions=versions,
        audit=audit,
        gate=QualityGate(quality_config(rules)),
        authorizer=authorizer,
        notifier=notifier if notifier is not None else notifier_from_rules(rules),
        time_port=clock,
    )
    return Services(
        rules=rules,
        content_repo=content_repo,
        authorizer=authorizer,
        versions=versions,
        audit=audit,
        lifecycle=lifecycle,
        sweeper=PublishSweeper(content_repo, lifecycle, clock, sweep_config(rules)),
        bulk=BulkOperationProcessor(lifecycle, max_ids=rules.bulk.max_ids),
    )


def build_sqlite_services(db_path: str, rules: Rules, **kwargs) -> Services:
    return build_services(
        rules,
        SQLiteContentRepo(db_path),
        SQLiteVersionRepo(db_path),
        SQLiteAuditRepo(db_path),
        **kwargs,
    )


def build_memory_services(rules: Rules, **kwargs) -> Services:
    return build_services(
        rules,
        InMemoryContentRepo(),
        InMemoryVersionRepo(),
        InMemoryAuditRepo(),
        **kwargs,
    )
