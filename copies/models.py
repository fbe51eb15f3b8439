from __future__ import annotations

import enum
from dataclasses import dataclass, field


class ChannelKind(str, enum.Enum):
    DM = "dm"
    GUILD = "guild"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class AttachmentRef:
    filename: str
    url: str
    content_type: str | None = None

    @property
    def is_image(self) -> bool:
        return str(self.content_type or "").lower().startswith("image/")


@dataclass(slots=True)
class SourceMessage:
    guild_id: int
    channel_id: int
    message_id: int
    author_id: int
    author_name: str
    author_avatar_url: str | None
    content: str
    created_at_iso: str | None
    attachments: list[AttachmentRef] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass(slots=True)
class RenderedCopy:
    title: str
    description: str
    colour: int
    timestamp_iso: str | None
    author_name: str
    author_icon_url: str | None
    footer_text: str
    source_link: str
    image_url: str | None = None
    fields: list[EmbedField] = field(default_factory=list)
    attachment_urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Same shape as discord.Embed.to_dict(), minus the keys that are unset."""
        out: dict = {
            "type": "rich",
            "title": self.title,
            "color": int(self.colour),
            "author": {"name": self.author_name},
            "footer": {"text": self.footer_text},
            "fields": [{"name": f.name, "value": f.value, "inline": f.inline} for f in self.fields],
        }
        if self.description:
            out["description"] = self.description
        if self.timestamp_iso:
            out["timestamp"] = self.timestamp_iso
        if self.author_icon_url:
            out["author"]["icon_url"] = self.author_icon_url
        if self.image_url:
            out["image"] = {"url": self.image_url}
        return out


@dataclass(frozen=True, slots=True)
class PrivateCopy:
    copy_channel_id: int
    copy_message_id: int
    rendered: RenderedCopy
    source_link: str
