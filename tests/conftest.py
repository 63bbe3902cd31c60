"""Shared fixtures: fixed clock, recording notifier, in-memory services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

from content_lifecycle.adapters.auth import AllowAllAuthorizer
from content_lifecycle.app_shell.wiring import Services, build_memory_services
from content_lifecycle.core.ports.notify import InvalidationEvent
from content_lifecycle.core.services.lifecycle import ContentLifecycleService
from content_lifecycle.domain.entities import Actor, ContentItem
from content_lifecycle.rules.loader import load_rules
from content_lifecycle.rules.models import Rules

ROOT = Path(__file__).resolve().parent.parent

# Fields that pass every rule of the quality gate.
GOOD_FIELDS: dict[str, Any] = {
    "title": "Spring launch notes",
    "body": "Everything that shipped in the spring release, in one place.",
    "excerpt": "What shipped this spring.",
    "meta_title": "Spring launch notes",
    "meta_description": "A round-up of every feature and fix that shipped in the spring release cycle.",
}


@dataclass
class MockTimePort:
    """Mock time port for testing."""

    current_time: datetime = field(
        default_factory=lambda: datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)
    )

    def now_utc(self) -> datetime:
        return self.current_time

    def advance(self, seconds: float) -> None:
        """Advance time for testing."""
        self.current_time += timedelta(seconds=seconds)


@dataclass
class RecordingNotifier:
    """Collects invalidation events; optionally fails every call."""

    events: list[InvalidationEvent] = field(default_factory=list)
    fail: bool = False

    def notify(self, event: InvalidationEvent) -> None:
        if self.fail:
            raise RuntimeError("revalidation endpoint unreachable")
        self.events.append(event)


@pytest.fixture
def rules() -> Rules:
    return load_rules(ROOT / "rules.yaml")


@pytest.fixture
def time_port() -> MockTimePort:
    return MockTimePort()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(rules: Rules, time_port: MockTimePort, notifier: RecordingNotifier) -> Services:
    return build_memory_services(
        rules,
        clock=time_port,
        notifier=notifier,
        authorizer=AllowAllAuthorizer(),
    )


@pytest.fixture
def lifecycle(services: Services) -> ContentLifecycleService:
    return services.lifecycle


@pytest.fixture
def actor() -> Actor:
    return Actor(id=uuid4(), roles=["admin"])


@pytest.fixture
def make_item(lifecycle: ContentLifecycleService, actor: Actor):
    """Factory: create a draft that passes the quality gate unless fields say otherwise."""
    counter = {"n": 0}

    def _make(slug: str | None = None, **overrides: Any) -> ContentItem:
        counter["n"] += 1
        fields = {**GOOD_FIELDS, **overrides}
        return lifecycle.create_item(
            slug=slug or f"item-{counter['n']}",
            actor=actor,
            **fields,
        )

    return _make
