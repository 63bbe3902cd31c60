import json
import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from content_lifecycle.core.services.audit import (
    AuditAction,
    AuditEntry,
    AuditQuery,
    EntityType,
)
from content_lifecycle.domain.entities import ContentItem, LocaleVariant, VersionRecord

# Seconds a connection waits on a locked database before raising.
BUSY_TIMEOUT = 30.0


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def format_dt(value: datetime | None) -> str | None:
    """UTC, fixed-width ISO-8601 so stored strings sort chronologically."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(s: str | None) -> datetime | None:
    if not s:
        return None
    value = datetime.fromisoformat(s)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


class _SQLiteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn


class SQLiteContentRepo(_SQLiteRepo):
    def _item_params(self, item: ContentItem) -> tuple[Any, ...]:
        return (
            item.content_type,
            item.slug,
            item.status,
            item.default_locale,
            format_dt(item.scheduled_at),
            item.scheduled_locale,
            format_dt(item.published_at),
            format_dt(item.rejected_at),
            format_dt(item.archived_at),
            item.quality_score,
            json.dumps(item.quality_issues),
            format_dt(item.updated_at),
            item.revision,
        )

    def _write_variants(self, conn: sqlite3.Connection, item: ContentItem) -> None:
        conn.execute("DELETE FROM locale_variants WHERE content_id = ?", (str(item.id),))
        for variant in item.variants:
            self._upsert_variant(conn, variant)

    def _upsert_variant(self, conn: sqlite3.Connection, variant: LocaleVariant) -> None:
        conn.execute(
            """
            INSERT INTO locale_variants (
                content_id, locale, title, body, excerpt, meta_title,
                meta_description, translation_status, quality_score, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(content_id, locale) DO UPDATE SET
                title=excluded.title,
                body=excluded.body,
                excerpt=excluded.excerpt,
                meta_title=excluded.meta_title,
                meta_description=excluded.meta_description,
                translation_status=excluded.translation_status,
                quality_score=excluded.quality_score,
                updated_at=excluded.updated_at
        """,
            (
                str(variant.content_id),
                variant.locale,
                variant.title,
                variant.body,
                variant.excerpt,
                variant.meta_title,
                variant.meta_description,
                variant.translation_status,
                variant.quality_score,
                format_dt(variant.updated_at),
            ),
        )

    def create(self, item: ContentItem) -> ContentItem:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO content_items (
                    content_type, slug, status, default_locale,
                    scheduled_at, scheduled_locale, published_at, rejected_at,
                    archived_at, quality_score, quality_issues_json, updated_at,
                    revision, id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (*self._item_params(item), str(item.id), format_dt(item.created_at)),
            )
            self._write_variants(conn, item)
            conn.commit()
            return item
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def compare_and_set_status(
        self, item: ContentItem, expected_status: str, expected_revision: int
    ) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE content_items SET
                    content_type = ?, slug = ?, status = ?, default_locale = ?,
                    scheduled_at = ?, scheduled_locale = ?, published_at = ?,
                    rejected_at = ?, archived_at = ?, quality_score = ?,
                    quality_issues_json = ?, updated_at = ?, revision = ?
                WHERE id = ? AND status = ? AND revision = ?
            """,
                (*self._item_params(item), str(item.id), expected_status, expected_revision),
            )
            if cursor.rowcount != 1:
                conn.rollback()
                return False

            self._write_variants(conn, item)
            conn.commit()
            return True
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def update_quality(self, item_id: UUID, score: int, issues: list[dict[str, Any]]) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE content_items SET quality_score = ?, quality_issues_json = ? WHERE id = ?",
                (score, json.dumps(issues), str(item_id)),
            )
            conn.commit()
        finally:
            conn.close()

    def get_by_id(self, item_id: UUID) -> ContentItem | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM content_items WHERE id = ?", (str(item_id),)
            ).fetchone()
            if not row:
                return None
            return self._load(conn, row)
        finally:
            conn.close()

    def slug_exists(self, slug: str) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT 1 FROM content_items WHERE slug = ?", (slug,)).fetchone()
            return row is not None
        finally:
            conn.close()

    def list_due_scheduled(self, now_utc: datetime, limit: int = 100) -> list[ContentItem]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM content_items
                WHERE status = 'scheduled' AND scheduled_at IS NOT NULL AND scheduled_at <= ?
                ORDER BY scheduled_at ASC
                LIMIT ?
            """,
                (format_dt(now_utc), limit),
            ).fetchall()
            return [self._load(conn, row) for row in rows]
        finally:
            conn.close()

    def delete(self, item_id: UUID) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute("DELETE FROM content_items WHERE id = ?", (str(item_id),))
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def count_by_status(self) -> dict[str, int]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM content_items GROUP BY status"
            ).fetchall()
            return {row["status"]: row["n"] for row in rows}
        finally:
            conn.close()

    def _load(self, conn: sqlite3.Connection, row: dict[str, Any]) -> ContentItem:
        variant_rows = conn.execute(
            "SELECT * FROM locale_variants WHERE content_id = ? ORDER BY locale ASC",
            (row["id"],),
        ).fetchall()

        variants = [
            LocaleVariant(
                content_id=UUID(v["content_id"]),
                locale=v["locale"],
                title=v["title"],
                body=v["body"],
                excerpt=v["excerpt"],
                meta_title=v["meta_title"],
                meta_description=v["meta_description"],
                translation_status=v["translation_status"],
                quality_score=v["quality_score"],
                updated_at=parse_dt(v["updated_at"]),
            )
            for v in variant_rows
        ]

        return ContentItem(
            id=UUID(row["id"]),
            content_type=row["content_type"],
            slug=row["slug"],
            status=row["status"],
            default_locale=row["default_locale"],
            scheduled_at=parse_dt(row["scheduled_at"]),
            scheduled_locale=row["scheduled_locale"],
            published_at=parse_dt(row["published_at"]),
            rejected_at=parse_dt(row["rejected_at"]),
            archived_at=parse_dt(row["archived_at"]),
            quality_score=row["quality_score"],
            quality_issues=json.loads(row["quality_issues_json"] or "[]"),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
            revision=row["revision"],
            variants=variants,
        )


class SQLiteVersionRepo(_SQLiteRepo):
    def append_version(
        self,
        entity_type: str,
        entity_id: str,
        build: Callable[[int], VersionRecord],
    ) -> VersionRecord:
        # Autocommit mode so BEGIN IMMEDIATE takes the write lock before the
        # max() read; concurrent writers queue on the busy timeout.
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT, isolation_level=None)
        conn.row_factory = dict_factory
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    """
                    SELECT COALESCE(MAX(version_number), 0) AS latest
                    FROM content_versions WHERE entity_type = ? AND entity_id = ?
                """,
                    (entity_type, entity_id),
                ).fetchone()
                record = build(row["latest"] + 1)
                conn.execute(
                    """
                    INSERT INTO content_versions (
                        id, entity_type, entity_id, version_number,
                        snapshot_json, author_id, message, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        str(record.id),
                        record.entity_type,
                        record.entity_id,
                        record.version_number,
                        json.dumps(record.snapshot),
                        str(record.author_id) if record.author_id else None,
                        record.message,
                        format_dt(record.created_at),
                    ),
                )
                conn.execute("COMMIT")
                return record
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    def list_versions(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 50,
    ) -> list[VersionRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM content_versions
                WHERE entity_type = ? AND entity_id = ?
                ORDER BY version_number DESC
                LIMIT ?
            """,
                (entity_type, entity_id, limit),
            ).fetchall()
            return [self._row_to_version(row) for row in rows]
        finally:
            conn.close()

    def get_version(
        self,
        entity_type: str,
        entity_id: str,
        version_number: int,
    ) -> VersionRecord | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT * FROM content_versions
                WHERE entity_type = ? AND entity_id = ? AND version_number = ?
            """,
                (entity_type, entity_id, version_number),
            ).fetchone()
            return self._row_to_version(row) if row else None
        finally:
            conn.close()

    def _row_to_version(self, row: dict[str, Any]) -> VersionRecord:
        return VersionRecord(
            id=UUID(row["id"]),
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            version_number=row["version_number"],
            snapshot=json.loads(row["snapshot_json"]),
            author_id=UUID(row["author_id"]) if row["author_id"] else None,
            message=row["message"],
            created_at=parse_dt(row["created_at"]),
        )


class SQLiteAuditRepo(_SQLiteRepo):
    def save(self, entry: AuditEntry) -> AuditEntry:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO audit_logs (
                    id, timestamp, action, entity_type, entity_id,
                    actor_id, description, changes_json, client_meta_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(entry.id),
                    format_dt(entry.timestamp),
                    entry.action.value,
                    entry.entity_type.value,
                    entry.entity_id,
                    str(entry.actor_id) if entry.actor_id else None,
                    entry.description,
                    json.dumps(entry.changes, default=str) if entry.changes is not None else None,
                    json.dumps(entry.client_meta),
                ),
            )
            conn.commit()
            return entry
        finally:
            conn.close()

    def get_by_id(self, entry_id: UUID) -> AuditEntry | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM audit_logs WHERE id = ?", (str(entry_id),)
            ).fetchone()
            return self._row_to_entry(row) if row else None
        finally:
            conn.close()

    def query(self, query: AuditQuery) -> list[AuditEntry]:
        where, params = self._where(query)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM audit_logs{where} ORDER BY timestamp DESC LIMIT ? OFFSET ?",
                (*params, query.limit, query.offset),
            ).fetchall()
            return [self._row_to_entry(row) for row in rows]
        finally:
            conn.close()

    def count(self, query: AuditQuery) -> int:
        where, params = self._where(query)
        conn = self._get_conn()
        try:
            row = conn.execute(f"SELECT COUNT(*) AS n FROM audit_logs{where}", params).fetchone()
            return row["n"]
        finally:
            conn.close()

    def _where(self, query: AuditQuery) -> tuple[str, tuple[Any, ...]]:
        clauses: list[str] = []
        params: list[Any] = []
        if query.entity_type:
            clauses.append("entity_type = ?")
            params.append(query.entity_type.value)
        if query.entity_id:
            clauses.append("entity_id = ?")
            params.append(query.entity_id)
        if query.actor_id:
            clauses.append("actor_id = ?")
            params.append(str(query.actor_id))
        if query.action:
            clauses.append("action = ?")
            params.append(query.action.value)
        if query.start_time:
            clauses.append("timestamp >= ?")
            params.append(format_dt(query.start_time))
        if query.end_time:
            clauses.append("timestamp <= ?")
            params.append(format_dt(query.end_time))
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        return where, tuple(params)

    def _row_to_entry(self, row: dict[str, Any]) -> AuditEntry:
        return AuditEntry(
            id=UUID(row["id"]),
            timestamp=parse_dt(row["timestamp"]),
            action=AuditAction(row["action"]),
            entity_type=EntityType(row["entity_type"]),
            entity_id=row["entity_id"],
            actor_id=UUID(row["actor_id"]) if row["actor_id"] else None,
            description=row["description"],
            changes=json.loads(row["changes_json"]) if row["changes_json"] else None,
            client_meta=json.loads(row["client_meta_json"] or "{}"),
        )
