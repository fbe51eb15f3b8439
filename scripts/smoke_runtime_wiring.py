from __future__ import annotations

import importlib
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


async def _noop_async(*args, **kwargs):
    return None


class _NullDispatcher:
    def submit(self, event):
        return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0

    import discord
    from discord.ext import commands
    from config.settings import default_bookmark_settings
    from ledger.service import MemoryLedger
    from misc.runtime_wiring import wire_bot_runtime

    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix="!", intents=intents)

    wire_bot_runtime(
        bot,
        ledger=MemoryLedger(utc_iso=lambda: "2026-01-01T00:00:00+00:00"),
        dispatcher=_NullDispatcher(),
        message_store=object(),
        settings=default_bookmark_settings(),
        linkage_mode="stored",
        ledger_backend="memory",
        maintenance_enabled=False,
        maintenance_loop_func=_noop_async,
        top_default_limit=10,
        top_max_limit=25,
    )

    expected_commands = {"bookmarks", "bookmarkcount"}
    existing_commands = set(bot.all_commands.keys())
    missing = sorted(expected_commands - existing_commands)
    if missing:
        raise RuntimeError(f"Missing expected commands: {missing}")

    expected_events = {"on_ready", "on_raw_reaction_add", "on_raw_reaction_remove"}
    # @bot.event binds handlers as instance attributes.
    missing_events = sorted(name for name in expected_events if name not in vars(bot))
    if missing_events:
        raise RuntimeError(f"Runtime events were not registered: {missing_events}")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
