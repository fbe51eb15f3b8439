from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from config.defaults import TOP_BOOKMARKS_DEFAULT_LIMIT
from config.defaults import TOP_BOOKMARKS_MAX_LIMIT


@dataclass(frozen=True)
class CommandDeps:
    ledger: Any = None
    settings: Any = None
    top_default_limit: int = TOP_BOOKMARKS_DEFAULT_LIMIT
    top_max_limit: int = TOP_BOOKMARKS_MAX_LIMIT
