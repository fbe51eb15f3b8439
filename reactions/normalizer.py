from __future__ import annotations

import enum
from dataclasses import dataclass

from copies.models import ChannelKind


class Surface(str, enum.Enum):
    ORIGIN = "origin"
    PRIVATE = "private"
    UNKNOWN = "unknown"


class EventKind(str, enum.Enum):
    ADD = "add"
    REMOVE = "remove"


class Intent(str, enum.Enum):
    ADD_IN_ORIGIN = "add_in_origin"
    REMOVE_IN_ORIGIN = "remove_in_origin"
    REMOVE_VIA_COPY = "remove_via_copy"
    IGNORE = "ignore"


@dataclass(frozen=True, slots=True)
class ReactionEvent:
    kind: EventKind
    actor_id: int
    emoji: str
    channel_id: int
    message_id: int
    guild_id: int | None
    surface: Surface


def surface_from_channel(guild_id: int | None, channel_kind: ChannelKind | None = None) -> Surface:
    if guild_id is not None:
        return Surface.ORIGIN
    if channel_kind == ChannelKind.DM:
        return Surface.PRIVATE
    return Surface.UNKNOWN


def classify_reaction(
    event: ReactionEvent,
    *,
    bot_user_id: int | None,
    bookmark_emoji: str,
    delete_emoji: str,
) -> Intent:
    if bot_user_id is not None and int(event.actor_id) == int(bot_user_id):
        return Intent.IGNORE
    if event.emoji not in (bookmark_emoji, delete_emoji):
        return Intent.IGNORE

    if event.surface == Surface.ORIGIN and event.emoji == bookmark_emoji:
        if event.kind == EventKind.ADD:
            return Intent.ADD_IN_ORIGIN
        return Intent.REMOVE_IN_ORIGIN

    if event.surface == Surface.PRIVATE and event.emoji == delete_emoji and event.kind == EventKind.ADD:
        return Intent.REMOVE_VIA_COPY

    return Intent.IGNORE
