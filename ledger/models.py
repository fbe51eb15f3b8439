from __future__ import annotations

import enum
from dataclasses import dataclass


class AddResult(enum.Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class RecordStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class BookmarkMeta:
    """What the ledger needs to know about the origin message when a bookmark is created."""

    guild_id: int
    channel_id: int
    message_author_id: int


@dataclass(slots=True)
class BookmarkRecord:
    guild_id: int
    channel_id: int
    user_id: int
    message_id: int
    message_link: str
    copy_message_id: int | None
    created_at_utc: str
    status: RecordStatus = RecordStatus.PENDING
    copy_channel_id: int | None = None
    updated_at_utc: str | None = None

    @property
    def key(self) -> tuple[int, int]:
        return (int(self.user_id), int(self.message_id))

    @property
    def has_copy(self) -> bool:
        return self.copy_message_id is not None


@dataclass(slots=True)
class AggregateCount:
    guild_id: int
    channel_id: int
    message_id: int
    message_author_id: int
    message_link: str
    count: int = 0


@dataclass(frozen=True, slots=True)
class Removed:
    record: BookmarkRecord
    remaining_count: int

    @property
    def message_id(self) -> int:
        return int(self.record.message_id)

    @property
    def origin_channel_id(self) -> int:
        return int(self.record.channel_id)


class _NotFound(enum.Enum):
    NOT_FOUND = "not_found"


NOT_FOUND = _NotFound.NOT_FOUND

RemoveResult = Removed | _NotFound
