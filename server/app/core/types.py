"""Column types and clock helpers shared by the sponsorship models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.types import DateTime, TypeDecorator

__all__ = ["UTCDateTime", "as_utc", "now_utc"]


def now_utc() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Tag naive values as UTC and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime normalized to UTC.

    SQLite drops the offset on write, so values are always stored as UTC wall
    clock time and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect):
        if isinstance(value, datetime):
            return as_utc(value)
        return value

    def process_result_value(self, value: Any, dialect):
        if isinstance(value, datetime):
            return as_utc(value)
        return value
