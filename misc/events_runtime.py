from __future__ import annotations

import asyncio
from typing import Any

from discord.ext import commands
from misc.errors import TransientExternalFailure
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from reactions.normalizer import EventKind
from reactions.normalizer import ReactionEvent
from reactions.normalizer import Surface
from reactions.normalizer import surface_from_channel


def _emoji_text(emoji: Any) -> str:
    # Custom emoji never match a glyph; unicode ones compare by name.
    if getattr(emoji, "id", None) is None:
        name = getattr(emoji, "name", None)
        if name:
            return str(name)
    return str(emoji)


def _is_candidate(payload: Any, *, bot_user_id: int | None, glyphs: tuple[str, ...]) -> bool:
    if bot_user_id is not None and int(payload.user_id) == int(bot_user_id):
        return False
    return _emoji_text(payload.emoji) in glyphs


def stop_maintenance(bot: Any) -> bool:
    """Cancel the maintenance task started in on_ready, if it is still running."""
    task = getattr(bot, "_maintenance_task", None)
    if task is None or task.done():
        return False
    task.cancel()
    print("[Maintenance] loop cancelled")
    return True


async def reaction_event_from_payload(payload: Any, kind: EventKind, *, message_store: Any) -> ReactionEvent | None:
    """
    Build a ReactionEvent from a raw gateway payload.

    Guild payloads carry guild_id; anything without one is resolved through the
    channel type. Returns None when the channel could not be resolved.
    """
    guild_id = getattr(payload, "guild_id", None)
    if guild_id is not None:
        surface = Surface.ORIGIN
    else:
        try:
            channel_kind = await message_store.fetch_channel_kind(int(payload.channel_id))
        except TransientExternalFailure as e:
            print(f"[Bookmarks] could not resolve channel {payload.channel_id}: {e}")
            return None
        surface = surface_from_channel(None, channel_kind)

    return ReactionEvent(
        kind=kind,
        actor_id=int(payload.user_id),
        emoji=_emoji_text(payload.emoji),
        channel_id=int(payload.channel_id),
        message_id=int(payload.message_id),
        guild_id=int(guild_id) if guild_id is not None else None,
        surface=surface,
    )


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    glyphs = (deps.settings.bookmark_emoji, deps.settings.delete_emoji)

    def _bot_user_id() -> int | None:
        return int(bot.user.id) if bot.user else None

    async def _feed(payload, kind: EventKind) -> None:
        if not _is_candidate(payload, bot_user_id=_bot_user_id(), glyphs=glyphs):
            return
        event = await reaction_event_from_payload(payload, kind, message_store=deps.message_store)
        if event is None:
            return
        deps.dispatcher.submit(event)

    @bot.event
    async def on_ready():
        print(
            f"Bookmark bot is online as {bot.user} "
            f"(linkage={deps.linkage_mode} ledger={deps.ledger_backend})"
        )
        if boot.maintenance_enabled and not getattr(bot, "_maintenance_task", None):
            bot._maintenance_task = asyncio.create_task(boot.maintenance_loop_func())
            print("[Maintenance] loop started")

    @bot.event
    async def on_raw_reaction_add(payload):
        await _feed(payload, EventKind.ADD)

    @bot.event
    async def on_raw_reaction_remove(payload):
        await _feed(payload, EventKind.REMOVE)
