import logging
import os
import sqlite3

logger = logging.getLogger(__name__)

# Tables (and columns the repositories rely on) a migrated database must have.
REQUIRED_SCHEMA: dict[str, set[str]] = {
    "content_items": {"id", "slug", "status", "scheduled_at", "scheduled_locale", "revision"},
    "locale_variants": {"content_id", "locale", "translation_status"},
    "content_versions": {"entity_type", "entity_id", "version_number", "snapshot_json"},
    "audit_logs": {"timestamp", "action", "entity_type", "entity_id", "changes_json"},
}


class SQLiteMigrator:
    """Applies plain .sql files in filename order, once each."""

    def __init__(self, db_path: str, migrations_dir: str):
        self.db_path = db_path
        self.migrations_dir = migrations_dir

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _ensure_migration_table(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT UNIQUE NOT NULL,
                applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
        """)

    def _get_applied_migrations(self, conn: sqlite3.Connection) -> set[str]:
        cursor = conn.execute("SELECT filename FROM _migrations")
        return {row[0] for row in cursor.fetchall()}

    def run_migrations(self) -> list[str]:
        """Apply all pending migrations. Returns the filenames applied."""
        conn = self._get_connection()
        applied_now: list[str] = []
        try:
            self._ensure_migration_table(conn)
            applied = self._get_applied_migrations(conn)

            files = sorted(f for f in os.listdir(self.migrations_dir) if f.endswith(".sql"))

            for filename in files:
                if filename not in applied:
                    logger.info("Applying migration: %s", filename)
                    self._apply_migration(conn, filename)
                    applied_now.append(filename)

            logger.info("All migrations applied (%d new)", len(applied_now))
            return applied_now
        finally:
            conn.close()

    def _read_up_script(self, filename: str) -> str:
        path = os.path.join(self.migrations_dir, filename)
        with open(path) as f:
            content = f.read()

        # Files start with the up script; anything after '-- Down' is ignored.
        if "-- Down" in content:
            return content.split("-- Down")[0]
        return content

    def _apply_migration(self, conn: sqlite3.Connection, filename: str) -> None:
        script = self._read_up_script(filename)
        try:
            conn.executescript(script)
            conn.execute("INSERT INTO _migrations (filename) VALUES (?)", (filename,))
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise RuntimeError(f"Migration {filename} failed: {e}") from e

    def verify_schema(self) -> None:
        """
        Check the database has every table and column the repositories use.

        Raises RuntimeError naming what is missing, so a database migrated
        from a different migrations directory fails at start-up rather than
        on the first write.
        """
        conn = self._get_connection()
        try:
            missing: list[str] = []
            for table, columns in REQUIRED_SCHEMA.items():
                present = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
                if not present:
                    missing.append(table)
                    continue
                missing.extend(f"{table}.{column}" for column in sorted(columns - present))
        finally:
            conn.close()

        if missing:
            raise RuntimeError(f"Database {self.db_path} is missing: {', '.join(missing)}")
        logger.info("Schema verified for %s", self.db_path)
