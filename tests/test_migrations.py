from __future__ import annotations

import sqlite3
import tempfile
import unittest
from pathlib import Path

from db.migrate import apply_sqlite_migrations
from db.migrate import discover_migrations
from db.migrate import list_schema_migrations_sync
from db.migrate import missing_columns_sync

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


class BookmarkMigrationTests(unittest.TestCase):
    def setUp(self):
        self.conn = sqlite3.connect(":memory:")

    def tearDown(self):
        self.conn.close()

    def test_applies_all_migrations_once(self):
        ran = apply_sqlite_migrations(self.conn, MIGRATIONS_DIR)
        self.assertEqual(ran[0], "0001_bookmark_core.sql")
        self.assertIn("0002_bookmark_reservations.py", ran)
        self.assertEqual(apply_sqlite_migrations(self.conn, MIGRATIONS_DIR), [])
        versions = [row[0] for row in list_schema_migrations_sync(self.conn)]
        self.assertEqual(versions, sorted(versions, reverse=True))

    def test_schema_has_bookmark_columns(self):
        apply_sqlite_migrations(self.conn, MIGRATIONS_DIR)
        self.assertEqual(
            missing_columns_sync(
                self.conn,
                "user_bookmarks",
                ["user_id", "message_id", "message_link", "copy_message_id", "status", "copy_channel_id"],
            ),
            [],
        )
        self.assertEqual(missing_columns_sync(self.conn, "bookmarked_messages", ["bookmark_count"]), [])

    def test_rows_from_before_reservations_become_active(self):
        with tempfile.TemporaryDirectory() as tmp:
            core = Path(tmp) / "0001_bookmark_core.sql"
            core.write_text((MIGRATIONS_DIR / "0001_bookmark_core.sql").read_text(encoding="utf-8"), encoding="utf-8")
            apply_sqlite_migrations(self.conn, tmp)
        self.conn.execute(
            "INSERT INTO user_bookmarks VALUES (1, 2, 3, 4, 'https://discord.com/channels/1/2/4', 99, '2025-01-01')"
        )
        self.conn.commit()

        apply_sqlite_migrations(self.conn, MIGRATIONS_DIR)
        row = self.conn.execute("SELECT status, updated_at_utc FROM user_bookmarks").fetchone()
        self.assertEqual(row, ("active", "2025-01-01"))

    def test_duplicate_versions_are_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "0001_a.sql").write_text("SELECT 1;", encoding="utf-8")
            (Path(tmp) / "0001_b.sql").write_text("SELECT 1;", encoding="utf-8")
            with self.assertRaises(RuntimeError):
                discover_migrations(tmp)

    def test_changed_migration_content_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "0001_demo.sql"
            path.write_text("CREATE TABLE demo (id INTEGER);", encoding="utf-8")
            apply_sqlite_migrations(self.conn, tmp)
            path.write_text("CREATE TABLE demo2 (id INTEGER);", encoding="utf-8")
            with self.assertRaises(RuntimeError):
                apply_sqlite_migrations(self.conn, tmp)


if __name__ == "__main__":
    unittest.main()
