from __future__ import annotations

from config.defaults import DEFAULT_COPY_SEARCH_LIMIT
from config.settings import BookmarkSettings
from copies.links import MessageLink
from copies.links import extract_source_link
from copies.message_store import MessageStore
from copies.models import PrivateCopy
from copies.models import RenderedCopy
from copies.models import SourceMessage
from copies.render import render_copy
from misc.errors import MalformedInput
from misc.errors import TransientExternalFailure


class CopyMaterializer:
    """Renders bookmarked messages and owns their transport to and from the user's DMs."""

    def __init__(
        self,
        *,
        message_store: MessageStore,
        settings: BookmarkSettings,
        copy_search_limit: int = DEFAULT_COPY_SEARCH_LIMIT,
    ) -> None:
        self.message_store = message_store
        self.settings = settings
        self.copy_search_limit = max(1, int(copy_search_limit))

    def render(self, message: SourceMessage, guild_name: str, source_link: str) -> RenderedCopy:
        return render_copy(message, guild_name, source_link, self.settings)

    async def deliver(self, user_id: int, rendered: RenderedCopy) -> PrivateCopy:
        channel_id = await self.message_store.open_private_channel_with(int(user_id))
        copy_message_id = await self.message_store.send_rendered_copy(channel_id, rendered)
        try:
            await self.message_store.add_reaction(channel_id, copy_message_id, self.settings.delete_emoji)
        except TransientExternalFailure as e:
            print(f"[Copies] Could not add {self.settings.delete_emoji} to copy {copy_message_id}: {e}")
        return PrivateCopy(
            copy_channel_id=int(channel_id),
            copy_message_id=int(copy_message_id),
            rendered=rendered,
            source_link=rendered.source_link,
        )

    async def retract(self, copy_channel_id: int, copy_message_id: int) -> None:
        deleted = await self.message_store.delete_message(int(copy_channel_id), int(copy_message_id))
        if not deleted:
            print(f"[Copies] Copy {copy_message_id} was already gone")

    async def unmark_origin(self, origin_channel_id: int, origin_message_id: int, user_id: int) -> None:
        await self.message_store.remove_reaction(
            int(origin_channel_id),
            int(origin_message_id),
            self.settings.bookmark_emoji,
            int(user_id),
        )

    async def read_copy_source(self, copy_channel_id: int, copy_message_id: int) -> MessageLink:
        embed = await self.message_store.fetch_copy_embed(int(copy_channel_id), int(copy_message_id))
        if embed is None:
            raise MalformedInput(f"message {copy_message_id} is not a bookmark copy")
        return extract_source_link(embed)

    async def locate_copy(self, user_id: int, source: MessageLink) -> tuple[int, int] | None:
        """Find the bot's copy of `source` in the user's recent DMs; (channel_id, message_id) or None."""
        channel_id = await self.message_store.open_private_channel_with(int(user_id))
        for candidate in await self.message_store.private_history(channel_id, self.copy_search_limit):
            if not candidate.authored_by_bot or candidate.embed is None:
                continue
            try:
                found = extract_source_link(candidate.embed)
            except MalformedInput:
                continue
            if found == source:
                return (int(channel_id), int(candidate.message_id))
        return None
