from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.commands_bookmarks import register as register_bookmarks
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from misc.events_runtime import register_runtime_events


def wire_bot_runtime(
    bot,
    *,
    ledger,
    dispatcher,
    message_store,
    settings,
    linkage_mode: str,
    ledger_backend: str,
    maintenance_enabled: bool,
    maintenance_loop_func,
    top_default_limit: int,
    top_max_limit: int,
) -> None:
    register_bookmarks(
        bot,
        deps=CommandDeps(
            ledger=ledger,
            settings=settings,
            top_default_limit=top_default_limit,
            top_max_limit=top_max_limit,
        ),
    )

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            dispatcher=dispatcher,
            message_store=message_store,
            settings=settings,
            linkage_mode=linkage_mode,
            ledger_backend=ledger_backend,
        ),
        boot=RuntimeBootDeps(
            maintenance_enabled=maintenance_enabled,
            maintenance_loop_func=maintenance_loop_func,
        ),
    )
