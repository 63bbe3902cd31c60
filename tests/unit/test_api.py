"""
Tests for the HTTP surface.

The real app is used with get_services overridden by in-memory services, so
routing, auth, schemas and error mapping are all exercised. The lifespan
(migrations, rules from disk) does not run because the client is not used as
a context manager.
"""

from __future__ import annotations

from collections.abc import Iterator
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from content_lifecycle.api.auth_utils import create_access_token
from content_lifecycle.api.deps import get_lifecycle_service, get_services, get_sweep_secret
from content_lifecycle.api.main import app
from content_lifecycle.app_shell.wiring import Services, build_memory_services
from tests.conftest import GOOD_FIELDS, MockTimePort, RecordingNotifier

SWEEP_SECRET = "s3cret"


@pytest.fixture
def api_services(rules, time_port: MockTimePort) -> Services:
    """Memory services with the RBAC table from rules.yaml."""
    return build_memory_services(rules, clock=time_port, notifier=RecordingNotifier())


@pytest.fixture
def client(api_services: Services) -> Iterator[TestClient]:
    app.dependency_overrides[get_services] = lambda: api_services
    app.dependency_overrides[get_sweep_secret] = lambda: SWEEP_SECRET
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(*roles: str) -> dict[str, str]:
    token = create_access_token(uuid4(), list(roles) or ["admin"])
    return {"Authorization": f"Bearer {token}"}


ADMIN = auth("admin")


def create(client: TestClient, slug: str = "spring-launch", **overrides) -> dict:
    body = {"slug": slug, **{k: v for k, v in GOOD_FIELDS.items()}, **overrides}
    response = client.post("/api/content", json=body, headers=ADMIN)
    assert response.status_code == 201, response.text
    return response.json()


class TestContent:
    def test_create_returns_camel_case(self, client: TestClient) -> None:
        data = create(client)

        assert data["status"] == "draft"
        assert data["defaultLocale"] == "en"
        assert data["variants"][0]["translationStatus"] == "draft"
        assert data["variants"][0]["metaDescription"] == GOOD_FIELDS["meta_description"]

    def test_create_accepts_camel_case_input(self, client: TestClient) -> None:
        response = client.post(
            "/api/content",
            json={"slug": "camel", "title": "Camel case", "metaTitle": "Camel"},
            headers=ADMIN,
        )

        assert response.status_code == 201
        assert response.json()["variants"][0]["metaTitle"] == "Camel"

    def test_duplicate_slug_is_400(self, client: TestClient) -> None:
        create(client, "taken")

        response = client.post("/api/content", json={"slug": "taken"}, headers=ADMIN)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"
        assert response.json()["error"]["field"] == "slug"

    def test_missing_body_field_is_400(self, client: TestClient) -> None:
        response = client.post("/api/content", json={"title": "No slug"}, headers=ADMIN)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_get_and_update_locale(self, client: TestClient) -> None:
        item = create(client)

        response = client.put(
            f"/api/content/{item['id']}/locales/fr",
            json={"title": "Notes de printemps"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        fetched = client.get(f"/api/content/{item['id']}", headers=ADMIN).json()
        assert [v["locale"] for v in fetched["variants"]] == ["en", "fr"]

    def test_unknown_item_is_404(self, client: TestClient) -> None:
        response = client.get(f"/api/content/{uuid4()}", headers=ADMIN)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_quality_report(self, client: TestClient) -> None:
        item = create(client, excerpt=None)

        report = client.get(f"/api/content/{item['id']}/quality", headers=ADMIN).json()

        assert report["passed"] is True
        assert report["score"] == 97
        assert report["issues"][0]["type"] == "excerpt-missing"


class TestAuth:
    def test_missing_token_is_401(self, client: TestClient) -> None:
        response = client.get(f"/api/content/{uuid4()}")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token_is_401(self, client: TestClient) -> None:
        response = client.get(
            f"/api/content/{uuid4()}", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    def test_viewer_cannot_publish(self, client: TestClient) -> None:
        item = create(client)

        response = client.post(f"/api/content/{item['id']}/publish", headers=auth("viewer"))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "forbidden"

    def test_viewer_cannot_bulk(self, client: TestClient) -> None:
        response = client.post(
            "/api/content/bulk",
            json={"action": "archive", "ids": [str(uuid4())]},
            headers=auth("viewer"),
        )

        assert response.status_code == 403


class TestTransitions:
    def test_publish(self, client: TestClient, api_services: Services) -> None:
        item = create(client)

        response = client.post(f"/api/content/{item['id']}/publish", headers=auth("publisher"))

        assert response.status_code == 200
        assert response.json() == {"contentItemId": item["id"], "message": "Content published"}
        assert api_services.lifecycle.get_item(UUID(item["id"])).status == "published"

    def test_gate_failure_returns_report(self, client: TestClient) -> None:
        item = create(client, body="")

        response = client.post(f"/api/content/{item['id']}/publish", headers=ADMIN)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "quality_gate_failed"
        assert "body-empty" in [i["type"] for i in error["report"]["issues"]]

    def test_invalid_transition_is_409(self, client: TestClient) -> None:
        item = create(client)

        response = client.post(f"/api/content/{item['id']}/archive", headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "invalid_transition"

    def test_schedule_and_unschedule(self, client: TestClient) -> None:
        item = create(client)

        response = client.post(
            f"/api/content/{item['id']}/schedule",
            json={"scheduleDate": "2024-06-15T13:00:00Z"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert response.json()["scheduledAt"].startswith("2024-06-15T13:00:00")

        response = client.delete(
            f"/api/content/{item['id']}/schedule", params={"toStatus": "review"}, headers=ADMIN
        )
        assert response.status_code == 200
        assert response.json()["status"] == "review"

    def test_schedule_in_past_is_400(self, client: TestClient) -> None:
        item = create(client)

        response = client.post(
            f"/api/content/{item['id']}/schedule",
            json={"scheduleDate": "2024-06-15T11:00:00Z"},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "scheduleDate"

    def test_review_reject_restore(self, client: TestClient) -> None:
        item = create(client)
        base = f"/api/content/{item['id']}"

        assert client.post(f"{base}/review", headers=ADMIN).json()["status"] == "review"
        rejected = client.post(f"{base}/reject", json={"reason": "Needs sources"}, headers=ADMIN)
        assert rejected.json()["status"] == "rejected"
        client.post(f"{base}/publish", headers=ADMIN)
        assert client.post(f"{base}/archive", headers=ADMIN).json()["status"] == "archived"
        assert client.post(f"{base}/restore", headers=ADMIN).json()["status"] == "draft"

    def test_variant_status(self, client: TestClient) -> None:
        item = create(client)

        response = client.post(
            f"/api/content/{item['id']}/locales/en/status",
            json={"status": "review"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert response.json()["variants"][0]["translationStatus"] == "review"


class TestBulk:
    def test_partial_success(self, client: TestClient) -> None:
        a = create(client, "a")
        c = create(client, "c")
        for item in (a, c):
            client.post(f"/api/content/{item['id']}/publish", headers=ADMIN)
        missing = str(uuid4())

        response = client.post(
            "/api/content/bulk",
            json={"action": "archive", "ids": [a["id"], missing, c["id"]]},
            headers=auth("publisher"),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [(e["id"], e["code"]) for e in data["errors"]] == [(missing, "not_found")]

    def test_unknown_action_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/api/content/bulk",
            json={"action": "explode", "ids": [str(uuid4())]},
            headers=ADMIN,
        )

        assert response.status_code == 400


class TestVersions:
    def test_history_compare_and_restore(self, client: TestClient) -> None:
        item = create(client)
        base = f"/api/content/{item['id']}"
        client.put(f"{base}/locales/en", json={"title": "Renamed notes"}, headers=ADMIN)

        history = client.get(f"{base}/versions", headers=ADMIN).json()
        assert [v["versionNumber"] for v in history] == [2, 1]
        assert history[0]["snapshot"] is None

        compare = client.get(f"{base}/versions/compare", params={"a": 1, "b": 2}, headers=ADMIN)
        paths = [c["path"] for c in compare.json()["changes"]]
        assert "variants[en].title" in paths

        v1 = client.get(f"{base}/versions/1", headers=ADMIN).json()
        assert v1["snapshot"]["variants"][0]["title"] == GOOD_FIELDS["title"]

        restored = client.post(f"{base}/versions/1/restore", headers=ADMIN).json()
        assert restored["variants"][0]["title"] == GOOD_FIELDS["title"]

    def test_missing_version_is_404(self, client: TestClient) -> None:
        item = create(client)

        response = client.get(f"/api/content/{item['id']}/versions/9", headers=ADMIN)

        assert response.status_code == 404


class TestSweepEndpoint:
    def test_requires_secret(self, client: TestClient) -> None:
        assert client.post("/api/scheduler/sweep").status_code == 401
        wrong = client.post("/api/scheduler/sweep", headers={"X-Sweep-Secret": "nope"})
        assert wrong.status_code == 401

    def test_disabled_without_configured_secret(self, client: TestClient) -> None:
        app.dependency_overrides[get_sweep_secret] = lambda: None

        response = client.post("/api/scheduler/sweep", headers={"X-Sweep-Secret": SWEEP_SECRET})

        assert response.status_code == 401

    def test_sweep_publishes_due_items(
        self, client: TestClient, time_port: MockTimePort
    ) -> None:
        item = create(client)
        client.post(
            f"/api/content/{item['id']}/schedule",
            json={"scheduleDate": "2024-06-15T12:30:00Z"},
            headers=ADMIN,
        )
        time_port.advance(3600)

        response = client.post("/api/scheduler/sweep", headers={"X-Sweep-Secret": SWEEP_SECRET})

        assert response.status_code == 200
        assert response.json()["totalPublished"] == 1
        fetched = client.get(f"/api/content/{item['id']}", headers=ADMIN).json()
        assert fetched["status"] == "published"


class TestAuditAndStats:
    def test_audit_log_filters(self, client: TestClient) -> None:
        item = create(client)
        client.post(f"/api/content/{item['id']}/publish", headers=ADMIN)

        response = client.get(
            "/api/audit-logs", params={"entityId": item["id"], "action": "publish"}, headers=ADMIN
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["entries"][0]["changes"]["to"] == "published"
        assert data["entries"][0]["clientMeta"]["request_id"]

    def test_audit_log_requires_permission(self, client: TestClient) -> None:
        assert client.get("/api/audit-logs", headers=auth("editor")).status_code == 403

    def test_audit_log_bad_action(self, client: TestClient) -> None:
        response = client.get("/api/audit-logs", params={"action": "explode"}, headers=ADMIN)

        assert response.status_code == 400

    def test_workflow_stats(self, client: TestClient) -> None:
        create(client, "one")
        item = create(client, "two")
        client.post(f"/api/content/{item['id']}/publish", headers=ADMIN)

        data = client.get("/api/workflow/stats", headers=ADMIN).json()

        assert data["counts"]["draft"] == 1
        assert data["counts"]["published"] == 1
        assert data["total"] == 2


class TestErrors:
    def test_request_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Request-ID": "abc123"})

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "abc123"

    def test_unexpected_error_is_500_without_details(self, api_services: Services) -> None:
        class BrokenLifecycle:
            def get_item(self, item_id):
                raise RuntimeError("sqlite3.OperationalError: disk I/O error")

        app.dependency_overrides[get_services] = lambda: api_services
        app.dependency_overrides[get_lifecycle_service] = lambda: BrokenLifecycle()
        try:
            client = TestClient(app, raise_server_exceptions=False)
            response = client.get(
                f"/api/content/{uuid4()}", headers={**ADMIN, "X-Request-ID": "req-500"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "internal_error"
        assert error["request_id"] == "req-500"
        assert "sqlite" not in response.text
