from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # reaction pipeline
    dispatcher: Any
    message_store: Any
    settings: Any

    # config echo
    linkage_mode: str
    ledger_backend: str


@dataclass(frozen=True)
class RuntimeBootDeps:
    maintenance_enabled: bool
    maintenance_loop_func: Callable
