from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from config.defaults import ATTACHMENT_NUMBERING_MODES
from config.defaults import BOOKMARK_EMOJI
from config.defaults import DEFAULT_ATTACHMENT_NUMBERING
from config.defaults import DELETE_EMOJI
from config.defaults import EMBED_COLOUR
from config.defaults import EMBED_FOOTER_TEMPLATE
from config.defaults import EMBED_TITLE_TEMPLATE


@dataclass(frozen=True, slots=True)
class BookmarkSettings:
    version: str = "bookmark_settings_v1"
    bookmark_emoji: str = BOOKMARK_EMOJI
    delete_emoji: str = DELETE_EMOJI
    embed_colour: int = EMBED_COLOUR
    title_template: str = EMBED_TITLE_TEMPLATE
    footer_template: str = EMBED_FOOTER_TEMPLATE
    attachment_numbering: str = DEFAULT_ATTACHMENT_NUMBERING

    def footer_text(self) -> str:
        return self.footer_template.format(delete_emoji=self.delete_emoji)

    def title_for(self, guild_name: str) -> str:
        return self.title_template.format(guild_name=guild_name)


def default_bookmark_settings() -> BookmarkSettings:
    return BookmarkSettings()


def _clean_text(value: Any, fallback: str) -> str:
    text = str(value or "").strip()
    return text or fallback


def _parse_colour(value: Any, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value if 0 <= value <= 0xFFFFFF else fallback
    text = str(value or "").strip().lower()
    if not text:
        return fallback
    if text.startswith("#"):
        text = "0x" + text[1:]
    try:
        out = int(text, 0)
    except ValueError:
        return fallback
    return out if 0 <= out <= 0xFFFFFF else fallback


def _validate_template(template: str, fallback: str, **fields: str) -> str:
    try:
        template.format(**fields)
    except (KeyError, IndexError, ValueError):
        return fallback
    return template


def load_bookmark_settings(path: str | Path | None) -> tuple[BookmarkSettings, str | None]:
    """
    Returns (settings, warning_message). warning_message is None on clean load.
    """
    defaults = default_bookmark_settings()
    if not path:
        return (defaults, "Bookmark settings path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Bookmark settings file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read bookmark settings from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid bookmark settings format in {p}; using built-in defaults.")

    embed = payload.get("embed") if isinstance(payload.get("embed"), dict) else {}
    attachments = payload.get("attachments") if isinstance(payload.get("attachments"), dict) else {}

    numbering = str(attachments.get("numbering") or defaults.attachment_numbering).strip().lower()
    warning = None
    if numbering not in ATTACHMENT_NUMBERING_MODES:
        warning = f"Unknown attachments.numbering={numbering!r} in {p}; using {defaults.attachment_numbering!r}."
        numbering = defaults.attachment_numbering

    bookmark_emoji = _clean_text(payload.get("bookmark_emoji"), defaults.bookmark_emoji)
    delete_emoji = _clean_text(payload.get("delete_emoji"), defaults.delete_emoji)
    if bookmark_emoji == delete_emoji:
        return (defaults, f"bookmark_emoji and delete_emoji are identical in {p}; using built-in defaults.")

    settings = BookmarkSettings(
        version=_clean_text(payload.get("version"), defaults.version),
        bookmark_emoji=bookmark_emoji,
        delete_emoji=delete_emoji,
        embed_colour=_parse_colour(embed.get("colour"), defaults.embed_colour),
        title_template=_validate_template(
            _clean_text(embed.get("title_template"), defaults.title_template),
            defaults.title_template,
            guild_name="guild",
        ),
        footer_template=_validate_template(
            _clean_text(embed.get("footer_template"), defaults.footer_template),
            defaults.footer_template,
            delete_emoji=delete_emoji,
        ),
        attachment_numbering=numbering,
    )
    return (settings, warning)
