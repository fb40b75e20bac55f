"""
Storage backends for lab events, score overrides and lab scores.

Both backends share one query layer (ScoreStore); the DSN decides which
one is used:
- postgres:// or postgresql:// URLs open a PostgresStore
- anything else is treated as a SQLite path, ``:memory:`` or sqlite:// URL
"""
from .base import (
    DEFAULT_FINISH_EVENT,
    DEFAULT_START_EVENT,
    DEFAULT_TIMEOUT,
    ScoreStore,
    StorageError,
    split_statements,
)
from .postgres import PostgresStore
from .sqlite import SQLiteStore, translate_to_sqlite


def new_store(
    dsn: str,
    finish_event_type: str = DEFAULT_FINISH_EVENT,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> ScoreStore:
    """Create the store matching the DSN."""
    if dsn.startswith(("postgres://", "postgresql://", "postgresql+")):
        return PostgresStore.connect(dsn, finish_event_type, timeout)
    return SQLiteStore.connect(dsn, finish_event_type, timeout)


__all__ = [
    "DEFAULT_FINISH_EVENT",
    "DEFAULT_START_EVENT",
    "DEFAULT_TIMEOUT",
    "ScoreStore",
    "StorageError",
    "SQLiteStore",
    "PostgresStore",
    "new_store",
    "split_statements",
    "translate_to_sqlite",
]
