"""Message jump links: https://discord.com/channels/<guild_id>/<channel_id>/<message_id>."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from config.defaults import MESSAGE_LINK_HOST
from config.defaults import MESSAGE_LINK_HOSTS
from config.defaults import SOURCE_FIELD_LABEL
from config.defaults import SOURCE_FIELD_NAME
from misc.errors import MalformedInput


SNOWFLAKE_RE = re.compile(r"^[1-9]\d{0,19}$")
MARKDOWN_LINK_RE = re.compile(r"^\[([^\]]*)\]\(([^)\s]+)\)$")
# Stored as signed 64-bit SQLite integers.
SNOWFLAKE_MAX = (1 << 63) - 1


@dataclass(frozen=True, slots=True)
class MessageLink:
    guild_id: int
    channel_id: int
    message_id: int

    @property
    def url(self) -> str:
        return encode_message_link(self.guild_id, self.channel_id, self.message_id)


def _snowflake(value: Any, label: str) -> int:
    text = str(value).strip()
    if not SNOWFLAKE_RE.fullmatch(text):
        raise MalformedInput(f"{label} is not a valid snowflake: {value!r}")
    out = int(text)
    if out > SNOWFLAKE_MAX:
        raise MalformedInput(f"{label} is out of range: {value!r}")
    return out


def encode_message_link(guild_id: int, channel_id: int, message_id: int) -> str:
    g = _snowflake(guild_id, "guild_id")
    c = _snowflake(channel_id, "channel_id")
    m = _snowflake(message_id, "message_id")
    return f"https://{MESSAGE_LINK_HOST}/channels/{g}/{c}/{m}"


def decode_message_link(link: str) -> MessageLink:
    text = str(link or "").strip()
    if not text:
        raise MalformedInput("empty message link")

    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError as e:
        raise MalformedInput(f"message link is not a URL: {text!r}") from e
    if parts.scheme != "https":
        raise MalformedInput(f"message link must use https: {text!r}")
    if (parts.hostname or "").lower() not in MESSAGE_LINK_HOSTS or port is not None:
        raise MalformedInput(f"message link host is not Discord: {text!r}")
    if parts.username or parts.password or parts.query or parts.fragment:
        raise MalformedInput(f"message link has unexpected components: {text!r}")

    segments = parts.path.split("/")
    # ['', 'channels', guild, channel, message]
    if len(segments) != 5 or segments[0] != "" or segments[1] != "channels":
        raise MalformedInput(f"message link path must be /channels/<guild>/<channel>/<message>: {text!r}")

    return MessageLink(
        guild_id=_snowflake(segments[2], "guild_id"),
        channel_id=_snowflake(segments[3], "channel_id"),
        message_id=_snowflake(segments[4], "message_id"),
    )


def format_source_value(link: str) -> str:
    return f"[{SOURCE_FIELD_LABEL}]({link})"


def parse_source_value(value: str) -> MessageLink:
    m = MARKDOWN_LINK_RE.fullmatch(str(value or "").strip())
    if not m:
        raise MalformedInput(f"Source field is not a markdown link: {value!r}")
    return decode_message_link(m.group(2))


def _field_pairs(embed: Any) -> list[tuple[str, str]]:
    if isinstance(embed, dict):
        raw_fields = embed.get("fields") or []
        return [(str(f.get("name") or ""), str(f.get("value") or "")) for f in raw_fields if isinstance(f, dict)]
    return [(str(getattr(f, "name", "") or ""), str(getattr(f, "value", "") or "")) for f in getattr(embed, "fields", None) or []]


def extract_source_link(embed: Any) -> MessageLink:
    """Recover the origin message from a private copy's embed (discord.Embed, RenderedCopy or dict)."""
    if embed is None:
        raise MalformedInput("private copy has no embed")
    sources = [value for name, value in _field_pairs(embed) if name == SOURCE_FIELD_NAME]
    if len(sources) != 1:
        raise MalformedInput(f"expected exactly one {SOURCE_FIELD_NAME} field, found {len(sources)}")
    return parse_source_value(sources[0])
