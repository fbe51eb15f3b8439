from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from config.defaults import LINKAGE_MODES
from config.settings import BookmarkSettings
from copies.links import MessageLink
from copies.links import encode_message_link
from copies.message_store import MessageStore
from copies.service import CopyMaterializer
from ledger.models import AddResult
from ledger.models import BookmarkMeta
from ledger.models import Removed
from ledger.service import BookmarkLedger
from misc.errors import MalformedInput
from misc.errors import TransientExternalFailure
from reactions.normalizer import Intent
from reactions.normalizer import ReactionEvent
from reactions.normalizer import classify_reaction


@dataclass(slots=True)
class Outcome:
    intent: Intent
    status: str
    ledger_applied: bool = False
    failed_side_effects: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failed_side_effects


class ReconciliationOrchestrator:
    """
    Applies one normalized reaction to the ledger, then mirrors it to Discord.

    The ledger write always happens first and is never undone by a failed side
    effect. The only rollback is release() of an add whose copy could not be
    delivered, so the user can react again.
    """

    def __init__(
        self,
        *,
        ledger: BookmarkLedger,
        materializer: CopyMaterializer,
        message_store: MessageStore,
        settings: BookmarkSettings,
        linkage_mode: str,
        bot_user_id: Callable[[], int | None],
    ) -> None:
        if linkage_mode not in LINKAGE_MODES:
            raise ValueError(f"Unknown linkage mode: {linkage_mode!r}")
        self.ledger = ledger
        self.materializer = materializer
        self.message_store = message_store
        self.settings = settings
        self.linkage_mode = linkage_mode
        self.bot_user_id = bot_user_id

    @property
    def stores_copy_ids(self) -> bool:
        return self.linkage_mode == "stored"

    def normalize(self, event: ReactionEvent) -> Intent:
        return classify_reaction(
            event,
            bot_user_id=self.bot_user_id(),
            bookmark_emoji=self.settings.bookmark_emoji,
            delete_emoji=self.settings.delete_emoji,
        )

    async def handle(self, event: ReactionEvent) -> Outcome:
        return await self.apply(self.normalize(event), event)

    async def apply(self, intent: Intent, event: ReactionEvent) -> Outcome:
        if intent == Intent.ADD_IN_ORIGIN:
            return await self.add_in_origin(event)
        if intent == Intent.REMOVE_VIA_COPY:
            return await self.remove_via_copy(event)
        if intent == Intent.REMOVE_IN_ORIGIN:
            return await self.remove_in_origin(event)
        return Outcome(intent=Intent.IGNORE, status="ignored")

    async def _best_effort(self, label: str, coro, outcome: Outcome) -> None:
        try:
            await coro
        except TransientExternalFailure as e:
            print(f"[Bookmarks] {label} failed: {e}")
            outcome.failed_side_effects.append(label)

    async def add_in_origin(self, event: ReactionEvent) -> Outcome:
        intent = Intent.ADD_IN_ORIGIN
        if event.guild_id is None:
            return Outcome(intent=intent, status="ignored")
        user_id, message_id = int(event.actor_id), int(event.message_id)
        link = encode_message_link(int(event.guild_id), int(event.channel_id), message_id)

        try:
            source = await self.message_store.fetch_message(int(event.channel_id), message_id)
            guild_name = await self.message_store.fetch_guild_name(int(event.guild_id))
        except TransientExternalFailure as e:
            print(f"[Bookmarks] add aborted for user={user_id} message={message_id}: {e}")
            return Outcome(intent=intent, status="aborted")
        source.guild_id = int(event.guild_id)

        meta = BookmarkMeta(
            guild_id=int(event.guild_id),
            channel_id=int(event.channel_id),
            message_author_id=int(source.author_id),
        )
        if await self.ledger.try_add(user_id, message_id, link, meta) == AddResult.ALREADY_EXISTS:
            return Outcome(intent=intent, status="already_exists")

        rendered = self.materializer.render(source, guild_name, link)
        try:
            copy = await self.materializer.deliver(user_id, rendered)
        except TransientExternalFailure as e:
            released = await self.ledger.release(user_id, message_id)
            print(
                f"[Bookmarks] delivery failed for user={user_id} message={message_id}: {e} "
                f"(reservation released={released})"
            )
            return Outcome(intent=intent, status="released")
        except Exception:
            await self.ledger.release(user_id, message_id)
            raise

        outcome = Outcome(intent=intent, status="created", ledger_applied=True)
        finalized = await self.ledger.finalize(
            user_id,
            message_id,
            copy_channel_id=copy.copy_channel_id if self.stores_copy_ids else None,
            copy_message_id=copy.copy_message_id if self.stores_copy_ids else None,
        )
        if not finalized:
            # Removed while the copy was in flight; the copy has no record behind it.
            outcome.status = "orphan_retracted"
            await self._best_effort(
                "retract_orphan",
                self.materializer.retract(copy.copy_channel_id, copy.copy_message_id),
                outcome,
            )
            return outcome

        print(f"[Bookmarks] user={user_id} bookmarked message={message_id} copy={copy.copy_message_id}")
        return outcome

    async def remove_via_copy(self, event: ReactionEvent) -> Outcome:
        intent = Intent.REMOVE_VIA_COPY
        user_id = int(event.actor_id)

        if self.stores_copy_ids:
            result = await self.ledger.remove_by_user_and_copy(user_id, int(event.message_id))
        else:
            try:
                source = await self.materializer.read_copy_source(int(event.channel_id), int(event.message_id))
            except MalformedInput as e:
                print(f"[Bookmarks] WARNING: dropping delete on message={event.message_id}: {e}")
                return Outcome(intent=intent, status="malformed")
            except TransientExternalFailure as e:
                print(f"[Bookmarks] remove aborted for user={user_id} copy={event.message_id}: {e}")
                return Outcome(intent=intent, status="aborted")
            result = await self.ledger.remove_by_user_and_message(user_id, source.message_id)

        if not isinstance(result, Removed):
            return Outcome(intent=intent, status="not_found")

        outcome = Outcome(intent=intent, status="removed", ledger_applied=True)
        # Unmark first: the copy is the user's only pointer back to the origin.
        await self._best_effort(
            "unmark_origin",
            self.materializer.unmark_origin(result.origin_channel_id, result.message_id, user_id),
            outcome,
        )
        await self._best_effort(
            "retract_copy",
            self.materializer.retract(int(event.channel_id), int(event.message_id)),
            outcome,
        )
        print(
            f"[Bookmarks] user={user_id} removed bookmark message={result.message_id} via copy "
            f"remaining={result.remaining_count}"
        )
        return outcome

    async def remove_in_origin(self, event: ReactionEvent) -> Outcome:
        intent = Intent.REMOVE_IN_ORIGIN
        user_id, message_id = int(event.actor_id), int(event.message_id)

        result = await self.ledger.remove_by_user_and_message(user_id, message_id)
        if not isinstance(result, Removed):
            return Outcome(intent=intent, status="not_found")

        outcome = Outcome(intent=intent, status="removed", ledger_applied=True)
        record = result.record
        if self.stores_copy_ids:
            if record.copy_message_id is not None:
                await self._best_effort(
                    "retract_copy",
                    self._retract_stored(user_id, record.copy_channel_id, record.copy_message_id),
                    outcome,
                )
        else:
            source = MessageLink(
                guild_id=int(record.guild_id),
                channel_id=int(record.channel_id),
                message_id=int(record.message_id),
            )
            await self._best_effort("retract_copy", self._retract_located(user_id, source), outcome)

        print(
            f"[Bookmarks] user={user_id} removed bookmark message={message_id} in origin "
            f"remaining={result.remaining_count}"
        )
        return outcome

    async def _retract_stored(self, user_id: int, copy_channel_id: int | None, copy_message_id: int) -> None:
        if copy_channel_id is None:
            copy_channel_id = await self.message_store.open_private_channel_with(int(user_id))
        await self.materializer.retract(int(copy_channel_id), int(copy_message_id))

    async def _retract_located(self, user_id: int, source: MessageLink) -> None:
        located = await self.materializer.locate_copy(user_id, source)
        if located is None:
            print(f"[Bookmarks] no copy of message={source.message_id} found in DMs of user={user_id}")
            return
        await self.materializer.retract(*located)
