from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import discord

from config.defaults import DEFAULT_EXTERNAL_TIMEOUT_SECONDS
from copies.models import AttachmentRef
from copies.models import ChannelKind
from copies.models import RenderedCopy
from copies.models import SourceMessage
from misc.errors import TransientExternalFailure


@dataclass(frozen=True, slots=True)
class CopyCandidate:
    message_id: int
    authored_by_bot: bool
    embed: dict | None


class MessageStore:
    """What the bookmark engine needs from the chat platform."""

    async def fetch_message(self, channel_id: int, message_id: int) -> SourceMessage:
        raise NotImplementedError

    async def fetch_channel_kind(self, channel_id: int) -> ChannelKind:
        raise NotImplementedError

    async def fetch_guild_name(self, guild_id: int) -> str:
        raise NotImplementedError

    async def send_rendered_copy(self, channel_id: int, rendered: RenderedCopy) -> int:
        raise NotImplementedError

    async def delete_message(self, channel_id: int, message_id: int) -> bool:
        """True if deleted, False if it was already gone."""
        raise NotImplementedError

    async def add_reaction(self, channel_id: int, message_id: int, glyph: str) -> None:
        raise NotImplementedError

    async def remove_reaction(self, channel_id: int, message_id: int, glyph: str, user_id: int) -> None:
        raise NotImplementedError

    async def open_private_channel_with(self, user_id: int) -> int:
        raise NotImplementedError

    async def fetch_copy_embed(self, channel_id: int, message_id: int) -> dict | None:
        raise NotImplementedError

    async def private_history(self, channel_id: int, limit: int) -> list[CopyCandidate]:
        raise NotImplementedError


def _best_display_name_for_user(user_obj: Any) -> str:
    for attr in ("display_name", "global_name", "name"):
        value = getattr(user_obj, attr, None)
        if value:
            return str(value)
    return "Unknown"


def _avatar_url(user_obj: Any) -> str | None:
    avatar = getattr(user_obj, "display_avatar", None)
    url = getattr(avatar, "url", None)
    return str(url) if url else None


def source_message_from_discord(message: discord.Message, *, guild_id: int) -> SourceMessage:
    return SourceMessage(
        guild_id=int(guild_id),
        channel_id=int(message.channel.id),
        message_id=int(message.id),
        author_id=int(message.author.id),
        author_name=_best_display_name_for_user(message.author),
        author_avatar_url=_avatar_url(message.author),
        content=message.content or "",
        created_at_iso=message.created_at.isoformat() if message.created_at else None,
        attachments=[
            AttachmentRef(filename=a.filename, url=a.url, content_type=a.content_type)
            for a in message.attachments
            if a.url
        ],
    )


class DiscordMessageStore(MessageStore):
    def __init__(self, client: discord.Client, *, timeout_seconds: float = DEFAULT_EXTERNAL_TIMEOUT_SECONDS) -> None:
        self.client = client
        self.timeout_seconds = max(0.5, float(timeout_seconds))

    async def _call(self, operation: str, coro, *, missing_ok: bool = False):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except discord.NotFound as exc:
            if missing_ok:
                return None
            raise TransientExternalFailure(operation, f"not found ({exc.text or exc.status})") from exc
        except asyncio.TimeoutError as exc:
            raise TransientExternalFailure(operation, f"timed out after {self.timeout_seconds:.1f}s") from exc
        except discord.HTTPException as exc:
            raise TransientExternalFailure(operation, f"HTTP {exc.status}: {exc.text or exc}") from exc
        except OSError as exc:
            raise TransientExternalFailure(operation, f"connection error: {exc}") from exc

    def _messageable(self, channel_id: int) -> discord.PartialMessageable:
        return self.client.get_partial_messageable(int(channel_id))

    async def fetch_message(self, channel_id: int, message_id: int) -> SourceMessage:
        message = await self._call("fetch_message", self._messageable(channel_id).fetch_message(int(message_id)))
        guild_id = getattr(message.guild, "id", None) or getattr(message.channel, "guild_id", None) or 0
        return source_message_from_discord(message, guild_id=int(guild_id))

    async def fetch_channel_kind(self, channel_id: int) -> ChannelKind:
        channel = self.client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._call("fetch_channel", self.client.fetch_channel(int(channel_id)))
        if isinstance(channel, discord.DMChannel):
            return ChannelKind.DM
        if isinstance(channel, (discord.abc.GuildChannel, discord.Thread)):
            return ChannelKind.GUILD
        return ChannelKind.OTHER

    async def fetch_guild_name(self, guild_id: int) -> str:
        guild = self.client.get_guild(int(guild_id))
        if guild is None:
            guild = await self._call("fetch_guild", self.client.fetch_guild(int(guild_id)))
        return str(guild.name)

    async def send_rendered_copy(self, channel_id: int, rendered: RenderedCopy) -> int:
        embed = discord.Embed.from_dict(rendered.to_dict())
        sent = await self._call("send_copy", self._messageable(channel_id).send(embed=embed))
        return int(sent.id)

    async def delete_message(self, channel_id: int, message_id: int) -> bool:
        partial = self._messageable(channel_id).get_partial_message(int(message_id))
        result = await self._call("delete_message", self._deleted(partial), missing_ok=True)
        return bool(result)

    @staticmethod
    async def _deleted(partial: discord.PartialMessage) -> bool:
        await partial.delete()
        return True

    async def add_reaction(self, channel_id: int, message_id: int, glyph: str) -> None:
        partial = self._messageable(channel_id).get_partial_message(int(message_id))
        await self._call("add_reaction", partial.add_reaction(glyph))

    async def remove_reaction(self, channel_id: int, message_id: int, glyph: str, user_id: int) -> None:
        partial = self._messageable(channel_id).get_partial_message(int(message_id))
        await self._call("remove_reaction", partial.remove_reaction(glyph, discord.Object(id=int(user_id))), missing_ok=True)

    async def open_private_channel_with(self, user_id: int) -> int:
        user = self.client.get_user(int(user_id))
        if user is None:
            user = await self._call("fetch_user", self.client.fetch_user(int(user_id)))
        channel = user.dm_channel
        if channel is None:
            channel = await self._call("create_dm", user.create_dm())
        return int(channel.id)

    async def fetch_copy_embed(self, channel_id: int, message_id: int) -> dict | None:
        message = await self._call(
            "fetch_copy",
            self._messageable(channel_id).fetch_message(int(message_id)),
            missing_ok=True,
        )
        if message is None or not self._is_own(message) or not message.embeds:
            return None
        return message.embeds[0].to_dict()

    def _is_own(self, message: discord.Message) -> bool:
        me = self.client.user
        return me is not None and int(message.author.id) == int(me.id)

    async def private_history(self, channel_id: int, limit: int) -> list[CopyCandidate]:
        async def _collect() -> list[CopyCandidate]:
            out: list[CopyCandidate] = []
            async for message in self._messageable(channel_id).history(limit=max(1, int(limit))):
                out.append(
                    CopyCandidate(
                        message_id=int(message.id),
                        authored_by_bot=self._is_own(message),
                        embed=message.embeds[0].to_dict() if message.embeds else None,
                    )
                )
            return out

        return await self._call("private_history", _collect())
