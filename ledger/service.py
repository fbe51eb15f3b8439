from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timezone
from typing import Any, Callable

from ledger.models import NOT_FOUND
from ledger.models import AddResult
from ledger.models import AggregateCount
from ledger.models import BookmarkMeta
from ledger.models import BookmarkRecord
from ledger.models import RecordStatus
from ledger.models import Removed
from ledger.models import RemoveResult
from ledger.store import fetch_aggregate_sync
from ledger.store import fetch_bookmark_sync
from ledger.store import finalize_bookmark_sync
from ledger.store import list_stale_pending_sync
from ledger.store import reconcile_counts_sync
from ledger.store import release_reservation_sync
from ledger.store import remove_by_user_and_copy_sync
from ledger.store import remove_by_user_and_message_sync
from ledger.store import reserve_bookmark_sync
from ledger.store import top_bookmarked_sync


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BookmarkLedger:
    """
    Authoritative bookmark state. Every mutating call is one atomic unit: a
    record and its aggregate count are always written together.

    try_add leaves the record 'pending'. It already counts toward the
    aggregate; finalize() attaches the delivered copy, release() rolls the
    reservation back.
    """

    async def try_add(self, user_id: int, message_id: int, link: str, meta: BookmarkMeta) -> AddResult:
        raise NotImplementedError

    async def finalize(
        self,
        user_id: int,
        message_id: int,
        *,
        copy_channel_id: int | None,
        copy_message_id: int | None,
    ) -> bool:
        raise NotImplementedError

    async def release(self, user_id: int, message_id: int) -> bool:
        raise NotImplementedError

    async def remove_by_user_and_message(self, user_id: int, message_id: int) -> RemoveResult:
        raise NotImplementedError

    async def remove_by_user_and_copy(self, user_id: int, copy_message_id: int) -> RemoveResult:
        raise NotImplementedError

    async def get(self, user_id: int, message_id: int) -> BookmarkRecord | None:
        raise NotImplementedError

    async def aggregate(self, guild_id: int, message_id: int) -> AggregateCount | None:
        raise NotImplementedError

    async def top_messages(self, guild_id: int, limit: int = 10) -> list[AggregateCount]:
        raise NotImplementedError

    async def stale_pending(self, older_than_iso: str, limit: int = 200) -> list[BookmarkRecord]:
        raise NotImplementedError

    async def reconcile(self) -> tuple[int, int]:
        raise NotImplementedError

    async def purge_stale_pending(self, older_than_iso: str, limit: int = 200) -> int:
        """Release reservations last touched before `older_than_iso`; returns how many were released."""
        released = 0
        for record in await self.stale_pending(older_than_iso, limit):
            if await self.release(record.user_id, record.message_id):
                released += 1
        return released


class SqliteLedger(BookmarkLedger):
    # One connection shared with the rest of the bot; db_lock is its global write lock.
    def __init__(self, *, db_conn: Any, db_lock: asyncio.Lock, utc_iso: Callable[[], str] = _utc_iso) -> None:
        self.db_conn = db_conn
        self.db_lock = db_lock
        self.utc_iso = utc_iso

    async def _run(self, func: Callable, *args, **kwargs):
        async with self.db_lock:
            return await asyncio.to_thread(func, self.db_conn, *args, **kwargs)

    async def try_add(self, user_id: int, message_id: int, link: str, meta: BookmarkMeta) -> AddResult:
        return await self._run(
            reserve_bookmark_sync,
            user_id=int(user_id),
            message_id=int(message_id),
            message_link=str(link),
            meta=meta,
            now_iso=self.utc_iso(),
        )

    async def finalize(
        self,
        user_id: int,
        message_id: int,
        *,
        copy_channel_id: int | None,
        copy_message_id: int | None,
    ) -> bool:
        return await self._run(
            finalize_bookmark_sync,
            user_id=int(user_id),
            message_id=int(message_id),
            copy_channel_id=copy_channel_id,
            copy_message_id=copy_message_id,
            now_iso=self.utc_iso(),
        )

    async def release(self, user_id: int, message_id: int) -> bool:
        return await self._run(release_reservation_sync, user_id=int(user_id), message_id=int(message_id))

    async def remove_by_user_and_message(self, user_id: int, message_id: int) -> RemoveResult:
        return await self._run(remove_by_user_and_message_sync, user_id=int(user_id), message_id=int(message_id))

    async def remove_by_user_and_copy(self, user_id: int, copy_message_id: int) -> RemoveResult:
        return await self._run(
            remove_by_user_and_copy_sync,
            user_id=int(user_id),
            copy_message_id=int(copy_message_id),
        )

    async def get(self, user_id: int, message_id: int) -> BookmarkRecord | None:
        return await self._run(fetch_bookmark_sync, int(user_id), int(message_id))

    async def aggregate(self, guild_id: int, message_id: int) -> AggregateCount | None:
        return await self._run(fetch_aggregate_sync, int(guild_id), int(message_id))

    async def top_messages(self, guild_id: int, limit: int = 10) -> list[AggregateCount]:
        return await self._run(top_bookmarked_sync, int(guild_id), int(limit))

    async def stale_pending(self, older_than_iso: str, limit: int = 200) -> list[BookmarkRecord]:
        return await self._run(list_stale_pending_sync, older_than_iso=older_than_iso, limit=limit)

    async def reconcile(self) -> tuple[int, int]:
        return await self._run(reconcile_counts_sync)


class MemoryLedger(BookmarkLedger):
    """Process-local ledger with the same semantics; state is lost on restart."""

    def __init__(self, *, utc_iso: Callable[[], str] = _utc_iso) -> None:
        self.utc_iso = utc_iso
        self._records: dict[tuple[int, int], BookmarkRecord] = {}
        self._counts: dict[tuple[int, int], AggregateCount] = {}
        self._lock = asyncio.Lock()

    def _delete_and_decrement(self, record: BookmarkRecord) -> int:
        self._records.pop(record.key, None)
        count_key = (int(record.guild_id), int(record.message_id))
        agg = self._counts.get(count_key)
        if agg is None:
            return 0
        agg.count -= 1
        if agg.count <= 0:
            del self._counts[count_key]
            return 0
        return agg.count

    async def try_add(self, user_id: int, message_id: int, link: str, meta: BookmarkMeta) -> AddResult:
        key = (int(user_id), int(message_id))
        async with self._lock:
            if key in self._records:
                return AddResult.ALREADY_EXISTS
            now = self.utc_iso()
            self._records[key] = BookmarkRecord(
                guild_id=int(meta.guild_id),
                channel_id=int(meta.channel_id),
                user_id=int(user_id),
                message_id=int(message_id),
                message_link=str(link),
                copy_message_id=None,
                created_at_utc=now,
                status=RecordStatus.PENDING,
                updated_at_utc=now,
            )
            count_key = (int(meta.guild_id), int(message_id))
            agg = self._counts.get(count_key)
            if agg is None:
                self._counts[count_key] = AggregateCount(
                    guild_id=int(meta.guild_id),
                    channel_id=int(meta.channel_id),
                    message_id=int(message_id),
                    message_author_id=int(meta.message_author_id),
                    message_link=str(link),
                    count=1,
                )
            else:
                agg.count += 1
            return AddResult.CREATED

    async def finalize(
        self,
        user_id: int,
        message_id: int,
        *,
        copy_channel_id: int | None,
        copy_message_id: int | None,
    ) -> bool:
        async with self._lock:
            record = self._records.get((int(user_id), int(message_id)))
            if record is None or record.status != RecordStatus.PENDING:
                return False
            record.status = RecordStatus.ACTIVE
            record.copy_channel_id = int(copy_channel_id) if copy_channel_id is not None else None
            record.copy_message_id = int(copy_message_id) if copy_message_id is not None else None
            record.updated_at_utc = self.utc_iso()
            return True

    async def release(self, user_id: int, message_id: int) -> bool:
        async with self._lock:
            record = self._records.get((int(user_id), int(message_id)))
            if record is None or record.status != RecordStatus.PENDING:
                return False
            self._delete_and_decrement(record)
            return True

    async def remove_by_user_and_message(self, user_id: int, message_id: int) -> RemoveResult:
        async with self._lock:
            record = self._records.get((int(user_id), int(message_id)))
            if record is None:
                return NOT_FOUND
            snapshot = dataclasses.replace(record)
            remaining = self._delete_and_decrement(record)
            return Removed(record=snapshot, remaining_count=remaining)

    async def remove_by_user_and_copy(self, user_id: int, copy_message_id: int) -> RemoveResult:
        async with self._lock:
            record = next(
                (
                    r
                    for r in self._records.values()
                    if r.user_id == int(user_id) and r.copy_message_id == int(copy_message_id)
                ),
                None,
            )
            if record is None:
                return NOT_FOUND
            snapshot = dataclasses.replace(record)
            remaining = self._delete_and_decrement(record)
            return Removed(record=snapshot, remaining_count=remaining)

    async def get(self, user_id: int, message_id: int) -> BookmarkRecord | None:
        async with self._lock:
            record = self._records.get((int(user_id), int(message_id)))
            return dataclasses.replace(record) if record is not None else None

    async def aggregate(self, guild_id: int, message_id: int) -> AggregateCount | None:
        async with self._lock:
            agg = self._counts.get((int(guild_id), int(message_id)))
            return dataclasses.replace(agg) if agg is not None else None

    async def top_messages(self, guild_id: int, limit: int = 10) -> list[AggregateCount]:
        async with self._lock:
            rows = [dataclasses.replace(a) for a in self._counts.values() if a.guild_id == int(guild_id) and a.count > 0]
        rows.sort(key=lambda a: (a.count, a.message_id), reverse=True)
        return rows[: max(1, int(limit))]

    async def stale_pending(self, older_than_iso: str, limit: int = 200) -> list[BookmarkRecord]:
        async with self._lock:
            rows = [
                dataclasses.replace(r)
                for r in self._records.values()
                if r.status == RecordStatus.PENDING and (r.updated_at_utc or r.created_at_utc) < older_than_iso
            ]
        rows.sort(key=lambda r: r.created_at_utc)
        return rows[: max(1, int(limit))]

    async def reconcile(self) -> tuple[int, int]:
        async with self._lock:
            live: dict[tuple[int, int], int] = {}
            for record in self._records.values():
                key = (int(record.guild_id), int(record.message_id))
                live[key] = live.get(key, 0) + 1
            corrected = 0
            purged = 0
            for key in list(self._counts):
                agg = self._counts[key]
                expected = live.get(key, 0)
                if agg.count != expected:
                    agg.count = expected
                    corrected += 1
                if agg.count <= 0:
                    del self._counts[key]
                    purged += 1
            return (corrected, purged)
