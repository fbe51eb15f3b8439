from __future__ import annotations

import asyncio

from reactions.normalizer import Intent
from reactions.normalizer import ReactionEvent
from reactions.orchestrator import Outcome
from reactions.orchestrator import ReconciliationOrchestrator


class ReactionDispatcher:
    """
    One task per inbound reaction. A (user, message, intent) key that is
    already being handled is dropped, so duplicate deliveries from the
    gateway are processed at most once while in flight.
    """

    def __init__(self, orchestrator: ReconciliationOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.accepting = True
        self._in_flight: set[tuple[int, int, Intent]] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def submit(self, event: ReactionEvent) -> asyncio.Task | None:
        if not self.accepting:
            return None
        intent = self.orchestrator.normalize(event)
        if intent == Intent.IGNORE:
            return None

        key = (int(event.actor_id), int(event.message_id), intent)
        if key in self._in_flight:
            print(f"[Bookmarks] duplicate {intent.value} for user={event.actor_id} message={event.message_id} dropped")
            return None

        self._in_flight.add(key)
        task = asyncio.create_task(self._run(key, intent, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, key: tuple[int, int, Intent], intent: Intent, event: ReactionEvent) -> Outcome | None:
        try:
            return await self.orchestrator.apply(intent, event)
        except Exception as e:
            print(
                f"[Bookmarks] handler error intent={intent.value} user={event.actor_id} "
                f"message={event.message_id}: {type(e).__name__}: {e}"
            )
            return None
        finally:
            self._in_flight.discard(key)

    async def drain(self) -> None:
        """Wait for everything submitted so far. Used by tests and scripts, not at shutdown."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def shutdown(self) -> None:
        # In-flight handlers are not awaited.
        self.accepting = False
        print(f"[Bookmarks] dispatcher stopped accepting events (in_flight={len(self._tasks)})")
