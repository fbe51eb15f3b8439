from __future__ import annotations

import itertools

from copies.message_store import CopyCandidate
from copies.message_store import MessageStore
from copies.models import AttachmentRef
from copies.models import ChannelKind
from copies.models import SourceMessage
from misc.errors import TransientExternalFailure

BOT_ID = 900
GUILD_ID = 111111111111111111
CHANNEL_ID = 222222222222222222
MESSAGE_ID = 333333333333333333
AUTHOR_ID = 444


class FakeMessageStore(MessageStore):
    """In-memory stand-in for Discord: origin messages, DM channels and reactions."""

    def __init__(self, *, bot_id: int = BOT_ID) -> None:
        self.bot_id = bot_id
        self.origin: dict[tuple[int, int], SourceMessage] = {}
        self.guild_names: dict[int, str] = {}
        self.dm_channels: dict[int, int] = {}
        self.dm_messages: dict[int, dict[int, dict]] = {}
        self.reactions: set[tuple[int, int, str, int]] = set()
        self.fail: set[str] = set()
        self.calls: list[str] = []
        self._ids = itertools.count(700000000000000000)

    def add_origin(
        self,
        *,
        guild_id: int = GUILD_ID,
        channel_id: int = CHANNEL_ID,
        message_id: int = MESSAGE_ID,
        content: str = "hello there",
        attachments: list[AttachmentRef] | None = None,
        guild_name: str = "Test Guild",
    ) -> SourceMessage:
        message = SourceMessage(
            guild_id=guild_id,
            channel_id=channel_id,
            message_id=message_id,
            author_id=AUTHOR_ID,
            author_name="Author",
            author_avatar_url=None,
            content=content,
            created_at_iso="2026-01-01T00:00:00+00:00",
            attachments=list(attachments or []),
        )
        self.origin[(channel_id, message_id)] = message
        self.guild_names[guild_id] = guild_name
        return message

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail:
            raise TransientExternalFailure(operation, "simulated failure")

    def copies_for(self, user_id: int) -> dict[int, dict]:
        channel_id = self.dm_channels.get(int(user_id))
        if channel_id is None:
            return {}
        return self.dm_messages.get(channel_id, {})

    async def fetch_message(self, channel_id, message_id):
        self._check("fetch_message")
        message = self.origin.get((int(channel_id), int(message_id)))
        if message is None:
            raise TransientExternalFailure("fetch_message", "unknown message")
        return message

    async def fetch_channel_kind(self, channel_id):
        self._check("fetch_channel_kind")
        if int(channel_id) in self.dm_messages:
            return ChannelKind.DM
        return ChannelKind.GUILD

    async def fetch_guild_name(self, guild_id):
        self._check("fetch_guild_name")
        return self.guild_names.get(int(guild_id), "")

    async def send_rendered_copy(self, channel_id, rendered):
        self._check("send_rendered_copy")
        message_id = next(self._ids)
        self.dm_messages.setdefault(int(channel_id), {})[message_id] = rendered.to_dict()
        return message_id

    async def delete_message(self, channel_id, message_id):
        self._check("delete_message")
        return self.dm_messages.get(int(channel_id), {}).pop(int(message_id), None) is not None

    async def add_reaction(self, channel_id, message_id, glyph):
        self._check("add_reaction")
        self.reactions.add((int(channel_id), int(message_id), glyph, self.bot_id))

    async def remove_reaction(self, channel_id, message_id, glyph, user_id):
        self._check("remove_reaction")
        self.reactions.discard((int(channel_id), int(message_id), glyph, int(user_id)))

    async def open_private_channel_with(self, user_id):
        self._check("open_private_channel_with")
        if int(user_id) not in self.dm_channels:
            channel_id = next(self._ids)
            self.dm_channels[int(user_id)] = channel_id
            self.dm_messages[channel_id] = {}
        return self.dm_channels[int(user_id)]

    async def fetch_copy_embed(self, channel_id, message_id):
        self._check("fetch_copy_embed")
        return self.dm_messages.get(int(channel_id), {}).get(int(message_id))

    async def private_history(self, channel_id, limit):
        self._check("private_history")
        items = sorted(self.dm_messages.get(int(channel_id), {}).items(), reverse=True)[: int(limit)]
        return [CopyCandidate(message_id=mid, authored_by_bot=True, embed=embed) for mid, embed in items]
