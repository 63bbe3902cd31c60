"""Tests for the operator CLI."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import uuid4

import pytest

from content_lifecycle.adapters.clock import FixedClock
from content_lifecycle.api.auth_utils import decode_access_token
from content_lifecycle.app_shell import cli
from content_lifecycle.app_shell.config import get_settings
from content_lifecycle.app_shell.wiring import build_sqlite_services
from content_lifecycle.domain.entities import Actor
from content_lifecycle.rules.loader import load_rules
from tests.conftest import GOOD_FIELDS, ROOT


@pytest.fixture
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CMS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CMS_RULES_PATH", str(ROOT / "rules.yaml"))
    monkeypatch.setenv("CMS_MIGRATIONS_DIR", str(ROOT / "migrations"))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


def test_migrate_is_idempotent(env, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["migrate"]) == 0
    assert "Applied 1 migration(s)" in capsys.readouterr().out
    assert Path(env.db_path).exists()

    assert cli.main(["migrate"]) == 0
    assert "Applied 0 migration(s)" in capsys.readouterr().out


def test_sweep_publishes_due_content(env, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["migrate"])
    capsys.readouterr()
    start = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
    services = build_sqlite_services(
        env.db_path, load_rules(env.rules_path), clock=FixedClock(start)
    )
    admin = Actor(id=uuid4(), roles=["admin"])
    item = services.lifecycle.create_item(slug="cli-sweep", actor=admin, **GOOD_FIELDS)
    services.lifecycle.schedule(item.id, start + timedelta(minutes=30), admin)

    code = cli.main(["sweep", "--now", "2024-06-15T13:00:00"])

    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["totalPublished"] == 1
    assert services.lifecycle.get_item(item.id).status == "published"


def test_sweep_fail_on_error(env, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["migrate"])
    start = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
    services = build_sqlite_services(
        env.db_path, load_rules(env.rules_path), clock=FixedClock(start)
    )
    admin = Actor(id=uuid4(), roles=["admin"])
    item = services.lifecycle.create_item(slug="empty", actor=admin, title="Empty body")
    services.lifecycle.schedule(item.id, start + timedelta(minutes=5), admin)
    capsys.readouterr()

    code = cli.main(["sweep", "--now", "2024-06-15T13:00:00Z", "--fail-on-error"])

    assert code == 1
    summary = json.loads(capsys.readouterr().out)
    assert summary["results"][0]["errorCode"] == "quality_gate_failed"


def test_token(env, capsys: pytest.CaptureFixture[str]) -> None:
    actor_id = uuid4()

    assert cli.main(["token", "--actor-id", str(actor_id), "--role", "publisher"]) == 0

    out = capsys.readouterr().out
    token = out.strip().splitlines()[-1].removeprefix("Token: ")
    payload = decode_access_token(token)
    assert payload is not None
    assert payload["sub"] == str(actor_id)
    assert payload["roles"] == ["publisher"]


def test_missing_rules_file_exits(env, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CMS_RULES_PATH", str(tmp_path / "missing.yaml"))
    get_settings.cache_clear()

    with pytest.raises(SystemExit):
        cli.main(["sweep"])
