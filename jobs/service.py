from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from copies.links import decode_message_link
from ledger.models import BookmarkRecord
from ledger.service import BookmarkLedger
from misc.errors import BookmarkError


async def _retract_stranded_copy(materializer: Any, record: BookmarkRecord) -> bool:
    # A crash between delivery and finalize leaves a copy in DMs that no record points at.
    try:
        found = await materializer.locate_copy(record.user_id, decode_message_link(record.message_link))
        if found is None:
            return False
        await materializer.retract(*found)
        return True
    except BookmarkError as e:
        print(
            f"[Maintenance] could not retract copy user={record.user_id} "
            f"message={record.message_id}: {e}"
        )
        return False


async def run_maintenance_once(
    *,
    ledger: BookmarkLedger,
    pending_ttl_seconds: int,
    materializer: Any = None,
    now: datetime | None = None,
) -> dict[str, int]:
    """
    Release reservations stuck in 'pending' and bring counts back in line with live records.

    With a materializer, each released reservation's copy is looked up in the
    user's DMs and deleted.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = (now - timedelta(seconds=max(1, int(pending_ttl_seconds)))).isoformat()

    released = 0
    retracted = 0
    if materializer is None:
        released = await ledger.purge_stale_pending(cutoff)
    else:
        for record in await ledger.stale_pending(cutoff):
            if not await ledger.release(record.user_id, record.message_id):
                continue
            released += 1
            if await _retract_stranded_copy(materializer, record):
                retracted += 1

    corrected, purged = await ledger.reconcile()
    return {"released": released, "retracted": retracted, "corrected": corrected, "purged": purged}


async def maintenance_loop(
    *,
    ledger: BookmarkLedger,
    interval_seconds: int,
    pending_ttl_seconds: int,
    materializer: Any = None,
) -> None:
    while True:
        try:
            stats = await run_maintenance_once(
                ledger=ledger,
                pending_ttl_seconds=pending_ttl_seconds,
                materializer=materializer,
            )
            if any(stats.values()):
                print(
                    f"[Maintenance] released={stats['released']} retracted={stats['retracted']} "
                    f"corrected={stats['corrected']} purged={stats['purged']}"
                )
        except Exception as e:
            print(f"[Maintenance] loop error: {e}")
        await asyncio.sleep(max(30, int(interval_seconds)))
