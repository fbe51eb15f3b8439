import os
import sqlite3
import asyncio
from datetime import datetime, timezone
import discord
from discord.ext import commands
from dotenv import load_dotenv
from config.defaults import DEFAULT_COPY_SEARCH_LIMIT
from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_EXTERNAL_TIMEOUT_SECONDS
from config.defaults import DEFAULT_LEDGER_BACKEND
from config.defaults import DEFAULT_LINKAGE_MODE
from config.defaults import DEFAULT_MAINTENANCE_INTERVAL_SECONDS
from config.defaults import DEFAULT_PENDING_TTL_SECONDS
from config.defaults import LEDGER_BACKENDS
from config.defaults import LINKAGE_MODES
from config.defaults import TOP_BOOKMARKS_DEFAULT_LIMIT
from config.defaults import TOP_BOOKMARKS_MAX_LIMIT
from config.settings import load_bookmark_settings
from copies.message_store import DiscordMessageStore
from copies.service import CopyMaterializer
from db.migrate import apply_sqlite_migrations
from db.migrate import list_schema_migrations_sync
from db.migrate import missing_columns_sync
from jobs.service import maintenance_loop as maintenance_loop_service
from ledger.service import MemoryLedger
from ledger.service import SqliteLedger
from misc.events_runtime import stop_maintenance
from misc.runtime_wiring import wire_bot_runtime
from reactions.dispatcher import ReactionDispatcher
from reactions.orchestrator import ReconciliationOrchestrator

# =========================
# ENV
# =========================
load_dotenv()

DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")


def _env_choice(name: str, default: str, allowed: set[str]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        print(f"[CFG] invalid {name}={value!r}; falling back to {default!r}")
        return default
    return value


def _env_number(name: str, default, cast=int):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        print(f"[CFG] invalid {name}={raw!r}; falling back to {default!r}")
        return default
    if value <= 0:
        print(f"[CFG] {name} must be positive; falling back to {default!r}")
        return default
    return value


LINKAGE_MODE = _env_choice("BOOKMARK_LINKAGE", DEFAULT_LINKAGE_MODE, LINKAGE_MODES)
LEDGER_BACKEND = _env_choice("BOOKMARK_LEDGER", DEFAULT_LEDGER_BACKEND, LEDGER_BACKENDS)
EXTERNAL_TIMEOUT_SECONDS = _env_number(
    "BOOKMARK_EXTERNAL_TIMEOUT_SECONDS", DEFAULT_EXTERNAL_TIMEOUT_SECONDS, float
)
MAINTENANCE_INTERVAL_SECONDS = _env_number(
    "BOOKMARK_MAINTENANCE_INTERVAL_SECONDS", DEFAULT_MAINTENANCE_INTERVAL_SECONDS
)
PENDING_TTL_SECONDS = _env_number("BOOKMARK_PENDING_TTL_SECONDS", DEFAULT_PENDING_TTL_SECONDS)

# Persistent path (point this at a mounted volume in production)
DB_PATH = os.getenv("BOOKMARK_DB_PATH", DEFAULT_DB_PATH)

print(
    f"[CFG] linkage={LINKAGE_MODE} ledger={LEDGER_BACKEND} "
    f"external_timeout_s={EXTERNAL_TIMEOUT_SECONDS} "
    f"maintenance_s={MAINTENANCE_INTERVAL_SECONDS} pending_ttl_s={PENDING_TTL_SECONDS}"
)
if LEDGER_BACKEND == "memory":
    print("[CFG] memory ledger: bookmarks and counts are lost on restart")

_RAW_SETTINGS_PATH = os.getenv("BOOKMARK_SETTINGS_PATH")
SETTINGS_PATH = os.getenv(
    "BOOKMARK_SETTINGS_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "config", "bookmarks.yml"),
)
SETTINGS, SETTINGS_WARNING = load_bookmark_settings(SETTINGS_PATH)
SETTINGS_SOURCE = "env_override" if _RAW_SETTINGS_PATH is not None else "file"
if SETTINGS_WARNING:
    SETTINGS_SOURCE = "fallback"

print(
    f"[CFG] bookmark_settings={SETTINGS.version} source={SETTINGS_SOURCE} path={SETTINGS_PATH} "
    f"numbering={SETTINGS.attachment_numbering}"
)
if SETTINGS_WARNING:
    print(f"[CFG] {SETTINGS_WARNING}")


# =========================
# SQLITE
# =========================
def init_db(db_path: str) -> sqlite3.Connection:
    # check_same_thread=False because discord.py event loop + to_thread usage
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cur = conn.cursor()

    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    repo_root = os.path.dirname(os.path.abspath(__file__))
    migrations_dir = os.path.join(repo_root, "migrations")
    apply_sqlite_migrations(conn, migrations_dir)

    try:
        required = [
            (
                "user_bookmarks",
                ["user_id", "message_id", "message_link", "copy_message_id", "status", "copy_channel_id"],
            ),
            ("bookmarked_messages", ["guild_id", "message_id", "message_author_id", "bookmark_count"]),
        ]
        for table, columns in required:
            missing = missing_columns_sync(conn, table, columns)
            print(f"[DB] {table} schema OK={not missing} missing={missing}")

        applied = list_schema_migrations_sync(conn, limit=1)
        if applied:
            print(f"[DB] latest migration {applied[0][0]}_{applied[0][1]}")
    except sqlite3.Error as e:
        print(f"[DB] Schema verification failed: {e}")

    conn.commit()
    return conn


def utc_iso(dt: datetime | None = None) -> str:
    dt = dt or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


if LEDGER_BACKEND == "sqlite":
    db_conn = init_db(DB_PATH)
    print(f"[DB] Using DB_PATH={DB_PATH}")
    db_lock = asyncio.Lock()
    ledger = SqliteLedger(db_conn=db_conn, db_lock=db_lock, utc_iso=utc_iso)
else:
    ledger = MemoryLedger(utc_iso=utc_iso)


# =========================
# DISCORD BOT
# =========================
class BookmarkBot(commands.Bot):
    dispatcher: ReactionDispatcher | None = None

    async def close(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.shutdown()
        stop_maintenance(self)
        await super().close()


intents = discord.Intents.default()
intents.guild_reactions = True
intents.dm_reactions = True
# Message bodies are copied into the DM, so content is required.
intents.message_content = True

bot = BookmarkBot(command_prefix="!", intents=intents)

message_store = DiscordMessageStore(bot, timeout_seconds=EXTERNAL_TIMEOUT_SECONDS)
materializer = CopyMaterializer(
    message_store=message_store,
    settings=SETTINGS,
    copy_search_limit=DEFAULT_COPY_SEARCH_LIMIT,
)
orchestrator = ReconciliationOrchestrator(
    ledger=ledger,
    materializer=materializer,
    message_store=message_store,
    settings=SETTINGS,
    linkage_mode=LINKAGE_MODE,
    bot_user_id=lambda: int(bot.user.id) if bot.user else None,
)
dispatcher = ReactionDispatcher(orchestrator)
bot.dispatcher = dispatcher


async def maintenance_loop():
    await maintenance_loop_service(
        ledger=ledger,
        interval_seconds=MAINTENANCE_INTERVAL_SECONDS,
        pending_ttl_seconds=PENDING_TTL_SECONDS,
        materializer=materializer,
    )


wire_bot_runtime(
    bot,
    ledger=ledger,
    dispatcher=dispatcher,
    message_store=message_store,
    settings=SETTINGS,
    linkage_mode=LINKAGE_MODE,
    ledger_backend=LEDGER_BACKEND,
    maintenance_enabled=True,
    maintenance_loop_func=maintenance_loop,
    top_default_limit=TOP_BOOKMARKS_DEFAULT_LIMIT,
    top_max_limit=TOP_BOOKMARKS_MAX_LIMIT,
)


bot.run(DISCORD_TOKEN)
