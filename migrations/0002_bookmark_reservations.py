from __future__ import annotations

import sqlite3


def _has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    cur = conn.cursor()
    cur.execute(f"PRAGMA table_info({table})")
    return any(str(row[1]) == column for row in cur.fetchall())


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    # Records start as 'pending' while the DM copy is being delivered.
    if not _has_column(conn, "user_bookmarks", "status"):
        cur.execute("ALTER TABLE user_bookmarks ADD COLUMN status TEXT NOT NULL DEFAULT 'active'")
    if not _has_column(conn, "user_bookmarks", "copy_channel_id"):
        cur.execute("ALTER TABLE user_bookmarks ADD COLUMN copy_channel_id INTEGER")
    if not _has_column(conn, "user_bookmarks", "updated_at_utc"):
        cur.execute("ALTER TABLE user_bookmarks ADD COLUMN updated_at_utc TEXT")

    cur.execute("UPDATE user_bookmarks SET updated_at_utc = created_at_utc WHERE updated_at_utc IS NULL")
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_user_bookmarks_status_updated "
        "ON user_bookmarks(status, updated_at_utc)"
    )
    conn.commit()
