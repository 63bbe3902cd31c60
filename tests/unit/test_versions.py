"""Tests for VersionService: numbering, snapshots and comparisons."""

from __future__ import annotations

import threading
from uuid import uuid4

import pytest

from content_lifecycle.adapters.memory import InMemoryVersionRepo
from content_lifecycle.core.services.versions import VersionService, diff_snapshots
from content_lifecycle.domain.errors import NotFound
from tests.conftest import MockTimePort


@pytest.fixture
def versions() -> VersionService:
    return VersionService(InMemoryVersionRepo(), MockTimePort())


class TestNumbering:
    def test_first_version_is_one(self, versions: VersionService) -> None:
        record = versions.create_version("content_item", "a", {"title": "x"}, None, "Created")

        assert record.version_number == 1
        assert record.message == "Created"

    def test_numbers_are_per_entity(self, versions: VersionService) -> None:
        versions.create_version("content_item", "a", {}, None, "")
        versions.create_version("content_item", "a", {}, None, "")
        other = versions.create_version("content_item", "b", {}, None, "")

        assert other.version_number == 1
        assert [v.version_number for v in versions.get_history("content_item", "a")] == [2, 1]

    def test_concurrent_appends_have_no_gaps(self, versions: VersionService) -> None:
        start = threading.Barrier(8)

        def writer() -> None:
            start.wait(timeout=5)
            for _ in range(25):
                versions.create_version("content_item", "hot", {}, None, "edit")

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        numbers = sorted(
            v.version_number for v in versions.get_history("content_item", "hot", limit=1000)
        )
        assert numbers == list(range(1, 201))


class TestReads:
    def test_snapshot_is_returned_exactly(self, versions: VersionService) -> None:
        author = uuid4()
        snapshot = {"slug": "a", "variants": [{"locale": "en", "title": "Hello"}]}
        versions.create_version("content_item", "a", snapshot, author, "Created")

        assert versions.get_version_content("content_item", "a", 1) == snapshot
        assert versions.get_version("content_item", "a", 1).author_id == author

    def test_missing_version(self, versions: VersionService) -> None:
        with pytest.raises(NotFound):
            versions.get_version("content_item", "a", 3)

    def test_history_limit(self, versions: VersionService) -> None:
        for _ in range(5):
            versions.create_version("content_item", "a", {}, None, "")

        history = versions.get_history("content_item", "a", limit=2)

        assert [v.version_number for v in history] == [5, 4]


class TestCompare:
    def test_compare_lists_changed_paths(self, versions: VersionService) -> None:
        versions.create_version(
            "content_item",
            "a",
            {"status": "draft", "variants": [{"locale": "en", "title": "One", "body": "b"}]},
            None,
            "",
        )
        versions.create_version(
            "content_item",
            "a",
            {"status": "published", "variants": [{"locale": "en", "title": "Two", "body": "b"}]},
            None,
            "",
        )

        changes = versions.compare_versions("content_item", "a", 1, 2)

        assert [(c.path, c.before, c.after) for c in changes] == [
            ("status", "draft", "published"),
            ("variants[en].title", "One", "Two"),
        ]

    def test_added_locale_shows_as_new_paths(self) -> None:
        before = {"variants": [{"locale": "en", "title": "Hi"}]}
        after = {"variants": [{"locale": "en", "title": "Hi"}, {"locale": "fr", "title": "Salut"}]}

        changes = diff_snapshots(before, after)

        assert [c.path for c in changes] == ["variants[fr].locale", "variants[fr].title"]
        assert all(c.before is None for c in changes)

    def test_identical_versions(self, versions: VersionService) -> None:
        versions.create_version("content_item", "a", {"title": "same"}, None, "")
        versions.create_version("content_item", "a", {"title": "same"}, None, "")

        assert versions.compare_versions("content_item", "a", 1, 2) == []
