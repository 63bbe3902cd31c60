"""Tests for the notifier, authorizer and clock adapters."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from uuid import uuid4

import httpx
import pytest

from content_lifecycle.adapters.auth import PolicyAuthorizer
from content_lifecycle.adapters.clock import FixedClock, SystemClock
from content_lifecycle.adapters.notifier import LoggingNotifier, WebhookCacheNotifier
from content_lifecycle.core.ports.notify import InvalidationEvent
from content_lifecycle.domain.entities import Actor


def make_event() -> InvalidationEvent:
    return InvalidationEvent(
        content_id=uuid4(),
        slug="spring-launch",
        status="published",
        action="publish",
        locales=("en", "fr"),
    )


class TestWebhookNotifier:
    def test_posts_json_payload(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        notifier = WebhookCacheNotifier(
            "https://site.example/revalidate", background=False, client=client
        )
        event = make_event()

        notifier.notify(event)

        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://site.example/revalidate"
        body = json.loads(seen[0].content)
        assert body == {
            "action": "publish",
            "content_id": str(event.content_id),
            "locales": ["en", "fr"],
            "slug": "spring-launch",
            "status": "published",
        }

    def test_foreground_error_propagates(self) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        notifier = WebhookCacheNotifier("https://site.example/revalidate", background=False, client=client)

        with pytest.raises(httpx.HTTPStatusError):
            notifier.notify(make_event())

    def test_background_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        done = threading.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            done.set()
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        notifier = WebhookCacheNotifier("https://site.example/revalidate", client=client)

        with caplog.at_level(logging.WARNING):
            notifier.notify(make_event())
            assert done.wait(timeout=5)
            for thread in threading.enumerate():
                if thread.name == "cache-invalidation":
                    thread.join(timeout=5)

        assert "Cache invalidation for" in caplog.text

    def test_logging_notifier(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            LoggingNotifier().notify(make_event())

        assert "Invalidate spring-launch" in caplog.text


class TestPolicyAuthorizer:
    def test_role_grants(self, rules) -> None:
        authorizer = PolicyAuthorizer(rules)

        assert authorizer.is_allowed(Actor(roles=["editor"]), "content:edit")
        assert not authorizer.is_allowed(Actor(roles=["editor"]), "content:publish")
        assert authorizer.is_allowed(Actor(roles=["viewer", "publisher"]), "content:publish")
        assert not authorizer.is_allowed(Actor(roles=["viewer"]), "content:edit")
        assert not authorizer.is_allowed(Actor(roles=["unknown"]), "content:edit")

    def test_wildcards(self, rules) -> None:
        rules.rbac.roles["content-lead"] = ["content:*"]
        authorizer = PolicyAuthorizer(rules)

        assert authorizer.is_allowed(Actor(roles=["admin"]), "audit:read")
        assert authorizer.is_allowed(Actor(roles=["content-lead"]), "content:delete")
        assert not authorizer.is_allowed(Actor(roles=["content-lead"]), "audit:read")


class TestClocks:
    def test_system_clock_is_utc(self) -> None:
        assert SystemClock().now_utc().tzinfo is not None

    def test_fixed_clock(self) -> None:
        start = datetime(2024, 1, 1, tzinfo=UTC)
        clock = FixedClock(start)

        clock.advance(seconds=90)
        assert clock.now_utc() == datetime(2024, 1, 1, 0, 1, 30, tzinfo=UTC)

        clock.set(start)
        assert clock.now_utc() == start
