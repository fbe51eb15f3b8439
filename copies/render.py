from __future__ import annotations

from config.defaults import ATTACHMENT_FIELD_TEMPLATE
from config.defaults import SOURCE_FIELD_NAME
from config.settings import BookmarkSettings
from copies.links import format_source_value
from copies.models import AttachmentRef
from copies.models import EmbedField
from copies.models import RenderedCopy
from copies.models import SourceMessage

# Discord embed limits.
EMBED_DESCRIPTION_MAX = 4096
EMBED_FIELD_VALUE_MAX = 1024
EMBED_AUTHOR_MAX = 256
EMBED_TITLE_MAX = 256
EMBED_FIELDS_MAX = 25


def _clip(text: str, limit: int) -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."


def _attachment_value(attachment: AttachmentRef) -> str:
    name = (attachment.filename or "file").replace("[", "(").replace("]", ")")
    # The URL is kept whole; only the label gives way when the value would overflow.
    room = EMBED_FIELD_VALUE_MAX - len(attachment.url) - 4
    return f"[{_clip(name, max(8, room))}]({attachment.url})"


def pick_preview(attachments: list[AttachmentRef]) -> int | None:
    for idx, attachment in enumerate(attachments):
        if attachment.is_image:
            return idx
    return None


def attachment_fields(attachments: list[AttachmentRef], preview_index: int | None, numbering: str) -> list[EmbedField]:
    """
    Every attachment except the inline preview becomes a link field.

    sequential: labels run 1..n over the listed files.
    positional: labels keep the file's position in the original message,
    so the preview's number is skipped.
    """
    out: list[EmbedField] = []
    listed = 0
    for idx, attachment in enumerate(attachments):
        if idx == preview_index:
            continue
        listed += 1
        number = idx + 1 if numbering == "positional" else listed
        out.append(
            EmbedField(
                name=ATTACHMENT_FIELD_TEMPLATE.format(number=number),
                value=_attachment_value(attachment),
                inline=False,
            )
        )
    return out


def render_copy(message: SourceMessage, guild_name: str, source_link: str, settings: BookmarkSettings) -> RenderedCopy:
    preview_index = pick_preview(message.attachments)
    fields = [EmbedField(name=SOURCE_FIELD_NAME, value=format_source_value(source_link), inline=False)]
    fields.extend(attachment_fields(message.attachments, preview_index, settings.attachment_numbering))
    if len(fields) > EMBED_FIELDS_MAX:
        fields = fields[:EMBED_FIELDS_MAX]

    return RenderedCopy(
        title=_clip(settings.title_for(guild_name or "a server"), EMBED_TITLE_MAX),
        description=_clip(message.content or "", EMBED_DESCRIPTION_MAX),
        colour=int(settings.embed_colour),
        timestamp_iso=message.created_at_iso,
        author_name=_clip(message.author_name or "Unknown", EMBED_AUTHOR_MAX),
        author_icon_url=message.author_avatar_url,
        footer_text=settings.footer_text(),
        source_link=source_link,
        image_url=message.attachments[preview_index].url if preview_index is not None else None,
        fields=fields,
        attachment_urls=[a.url for a in message.attachments],
    )
