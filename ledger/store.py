from __future__ import annotations

import sqlite3
from typing import Any

from ledger.models import NOT_FOUND
from ledger.models import AddResult
from ledger.models import AggregateCount
from ledger.models import BookmarkMeta
from ledger.models import BookmarkRecord
from ledger.models import RecordStatus
from ledger.models import Removed
from ledger.models import RemoveResult


_RECORD_COLUMNS = """
    guild_id, channel_id, user_id, message_id, message_link,
    copy_message_id, created_at_utc, status, copy_channel_id, updated_at_utc
"""

_AGGREGATE_COLUMNS = """
    guild_id, channel_id, message_id, message_author_id, message_link, bookmark_count
"""


def _row_to_record(row: tuple[Any, ...] | None) -> BookmarkRecord | None:
    if row is None:
        return None
    return BookmarkRecord(
        guild_id=int(row[0]),
        channel_id=int(row[1]),
        user_id=int(row[2]),
        message_id=int(row[3]),
        message_link=str(row[4]),
        copy_message_id=int(row[5]) if row[5] is not None else None,
        created_at_utc=str(row[6]),
        status=RecordStatus(str(row[7] or "active")),
        copy_channel_id=int(row[8]) if row[8] is not None else None,
        updated_at_utc=str(row[9]) if row[9] is not None else None,
    )


def _row_to_aggregate(row: tuple[Any, ...] | None) -> AggregateCount | None:
    if row is None:
        return None
    return AggregateCount(
        guild_id=int(row[0]),
        channel_id=int(row[1]),
        message_id=int(row[2]),
        message_author_id=int(row[3]),
        message_link=str(row[4]),
        count=int(row[5]),
    )


def _delete_record_and_decrement(cur: sqlite3.Cursor, record: BookmarkRecord) -> int:
    cur.execute(
        "DELETE FROM user_bookmarks WHERE user_id = ? AND message_id = ?",
        (record.user_id, record.message_id),
    )
    cur.execute(
        """
        UPDATE bookmarked_messages
        SET bookmark_count = bookmark_count - 1
        WHERE guild_id = ? AND message_id = ?
        """,
        (record.guild_id, record.message_id),
    )
    cur.execute(
        "SELECT bookmark_count FROM bookmarked_messages WHERE guild_id = ? AND message_id = ?",
        (record.guild_id, record.message_id),
    )
    row = cur.fetchone()
    remaining = int(row[0]) if row else 0
    if remaining <= 0:
        cur.execute(
            "DELETE FROM bookmarked_messages WHERE guild_id = ? AND message_id = ? AND bookmark_count <= 0",
            (record.guild_id, record.message_id),
        )
    return max(0, remaining)


def reserve_bookmark_sync(
    conn: sqlite3.Connection,
    *,
    user_id: int,
    message_id: int,
    message_link: str,
    meta: BookmarkMeta,
    now_iso: str,
) -> AddResult:
    conn.execute("BEGIN IMMEDIATE")
    try:
        cur = conn.cursor()
        cur.execute(
            "SELECT 1 FROM user_bookmarks WHERE user_id = ? AND message_id = ? LIMIT 1",
            (int(user_id), int(message_id)),
        )
        if cur.fetchone() is not None:
            conn.rollback()
            return AddResult.ALREADY_EXISTS

        cur.execute(
            """
            INSERT INTO user_bookmarks (
                guild_id, channel_id, user_id, message_id, message_link,
                copy_message_id, created_at_utc, status, copy_channel_id, updated_at_utc
            ) VALUES (?, ?, ?, ?, ?, NULL, ?, 'pending', NULL, ?)
            """,
            (
                int(meta.guild_id),
                int(meta.channel_id),
                int(user_id),
                int(message_id),
                str(message_link),
                now_iso,
                now_iso,
            ),
        )
        cur.execute(
            """
            INSERT INTO bookmarked_messages (
                guild_id, channel_id, message_id, message_author_id, message_link, bookmark_count
            ) VALUES (?, ?, ?, ?, ?, 1)
            ON CONFLICT(guild_id, message_id) DO UPDATE SET
                bookmark_count = bookmark_count + 1
            """,
            (
                int(meta.guild_id),
                int(meta.channel_id),
                int(message_id),
                int(meta.message_author_id),
                str(message_link),
            ),
        )
        conn.commit()
        return AddResult.CREATED
    except sqlite3.IntegrityError:
        conn.rollback()
        return AddResult.ALREADY_EXISTS
    except Exception:
        conn.rollback()
        raise


def finalize_bookmark_sync(
    conn: sqlite3.Connection,
    *,
    user_id: int,
    message_id: int,
    copy_channel_id: int | None,
    copy_message_id: int | None,
    now_iso: str,
) -> bool:
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE user_bookmarks
        SET status = 'active',
            copy_channel_id = ?,
            copy_message_id = ?,
            updated_at_utc = ?
        WHERE user_id = ? AND message_id = ? AND status = 'pending'
        """,
        (
            int(copy_channel_id) if copy_channel_id is not None else None,
            int(copy_message_id) if copy_message_id is not None else None,
            now_iso,
            int(user_id),
            int(message_id),
        ),
    )
    conn.commit()
    return cur.rowcount == 1


def release_reservation_sync(conn: sqlite3.Connection, *, user_id: int, message_id: int) -> bool:
    conn.execute("BEGIN IMMEDIATE")
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_RECORD_COLUMNS} FROM user_bookmarks WHERE user_id = ? AND message_id = ? AND status = 'pending'",
            (int(user_id), int(message_id)),
        )
        record = _row_to_record(cur.fetchone())
        if record is None:
            conn.rollback()
            return False
        _delete_record_and_decrement(cur, record)
        conn.commit()
        return True
    except Exception:
        conn.rollback()
        raise


def remove_by_user_and_message_sync(conn: sqlite3.Connection, *, user_id: int, message_id: int) -> RemoveResult:
    conn.execute("BEGIN IMMEDIATE")
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_RECORD_COLUMNS} FROM user_bookmarks WHERE user_id = ? AND message_id = ?",
            (int(user_id), int(message_id)),
        )
        record = _row_to_record(cur.fetchone())
        if record is None:
            conn.rollback()
            return NOT_FOUND
        remaining = _delete_record_and_decrement(cur, record)
        conn.commit()
        return Removed(record=record, remaining_count=remaining)
    except Exception:
        conn.rollback()
        raise


def remove_by_user_and_copy_sync(conn: sqlite3.Connection, *, user_id: int, copy_message_id: int) -> RemoveResult:
    conn.execute("BEGIN IMMEDIATE")
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_RECORD_COLUMNS} FROM user_bookmarks WHERE user_id = ? AND copy_message_id = ? LIMIT 1",
            (int(user_id), int(copy_message_id)),
        )
        record = _row_to_record(cur.fetchone())
        if record is None:
            conn.rollback()
            return NOT_FOUND
        remaining = _delete_record_and_decrement(cur, record)
        conn.commit()
        return Removed(record=record, remaining_count=remaining)
    except Exception:
        conn.rollback()
        raise


def fetch_bookmark_sync(conn: sqlite3.Connection, user_id: int, message_id: int) -> BookmarkRecord | None:
    cur = conn.cursor()
    cur.execute(
        f"SELECT {_RECORD_COLUMNS} FROM user_bookmarks WHERE user_id = ? AND message_id = ?",
        (int(user_id), int(message_id)),
    )
    return _row_to_record(cur.fetchone())


def fetch_aggregate_sync(conn: sqlite3.Connection, guild_id: int, message_id: int) -> AggregateCount | None:
    cur = conn.cursor()
    cur.execute(
        f"SELECT {_AGGREGATE_COLUMNS} FROM bookmarked_messages WHERE guild_id = ? AND message_id = ?",
        (int(guild_id), int(message_id)),
    )
    return _row_to_aggregate(cur.fetchone())


def top_bookmarked_sync(conn: sqlite3.Connection, guild_id: int, limit: int = 10) -> list[AggregateCount]:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_AGGREGATE_COLUMNS}
        FROM bookmarked_messages
        WHERE guild_id = ? AND bookmark_count > 0
        ORDER BY bookmark_count DESC, message_id DESC
        LIMIT ?
        """,
        (int(guild_id), max(1, int(limit))),
    )
    return [agg for agg in (_row_to_aggregate(row) for row in cur.fetchall()) if agg is not None]


def list_stale_pending_sync(conn: sqlite3.Connection, *, older_than_iso: str, limit: int = 200) -> list[BookmarkRecord]:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_RECORD_COLUMNS}
        FROM user_bookmarks
        WHERE status = 'pending' AND COALESCE(updated_at_utc, created_at_utc) < ?
        ORDER BY created_at_utc ASC
        LIMIT ?
        """,
        (older_than_iso, max(1, int(limit))),
    )
    return [rec for rec in (_row_to_record(row) for row in cur.fetchall()) if rec is not None]


def reconcile_counts_sync(conn: sqlite3.Connection) -> tuple[int, int]:
    """
    Recompute every count from the live records and purge rows that end at zero.
    Returns (rows_corrected, rows_purged).
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE bookmarked_messages
            SET bookmark_count = (
                SELECT COUNT(*)
                FROM user_bookmarks ub
                WHERE ub.guild_id = bookmarked_messages.guild_id
                  AND ub.message_id = bookmarked_messages.message_id
            )
            WHERE bookmark_count != (
                SELECT COUNT(*)
                FROM user_bookmarks ub
                WHERE ub.guild_id = bookmarked_messages.guild_id
                  AND ub.message_id = bookmarked_messages.message_id
            )
            """
        )
        corrected = int(cur.rowcount or 0)
        cur.execute("DELETE FROM bookmarked_messages WHERE bookmark_count <= 0")
        purged = int(cur.rowcount or 0)
        conn.commit()
        return (corrected, purged)
    except Exception:
        conn.rollback()
        raise
