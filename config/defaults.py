from __future__ import annotations

BOOKMARK_EMOJI = "\U0001F516"
DELETE_EMOJI = "❌"

DEFAULT_DB_PATH = "bookmarks.db"
DEFAULT_LINKAGE_MODE = "stored"
DEFAULT_LEDGER_BACKEND = "sqlite"
LINKAGE_MODES = {"stored", "embedded"}
LEDGER_BACKENDS = {"sqlite", "memory"}

# Bound on every call toward the Discord API made while handling one event.
DEFAULT_EXTERNAL_TIMEOUT_SECONDS = 10.0

DEFAULT_MAINTENANCE_INTERVAL_SECONDS = 300
DEFAULT_PENDING_TTL_SECONDS = 900

# How far back locate_copy looks in a user's DMs (embedded linkage only).
DEFAULT_COPY_SEARCH_LIMIT = 100

MESSAGE_LINK_HOST = "discord.com"
MESSAGE_LINK_HOSTS = {"discord.com", "discordapp.com", "ptb.discord.com", "canary.discord.com"}

EMBED_COLOUR = 0x3498DB
EMBED_TITLE_TEMPLATE = "Bookmark from {guild_name}"
EMBED_FOOTER_TEMPLATE = "React with {delete_emoji} to remove this bookmark"
SOURCE_FIELD_NAME = "Source"
SOURCE_FIELD_LABEL = "Jump to message"
ATTACHMENT_FIELD_TEMPLATE = "Attachment {number}"
ATTACHMENT_NUMBERING_MODES = {"sequential", "positional"}
DEFAULT_ATTACHMENT_NUMBERING = "sequential"

TOP_BOOKMARKS_DEFAULT_LIMIT = 10
TOP_BOOKMARKS_MAX_LIMIT = 25
