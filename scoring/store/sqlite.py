"""
SQLite flavour of the score store.
"""
import logging
import threading
import time
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection
from sqlalchemy.pool import StaticPool

from .base import DEFAULT_FINISH_EVENT, DEFAULT_TIMEOUT, ScoreStore

logger = logging.getLogger(__name__)

# Postgres constructs used by the migrations and their SQLite spelling.
# Order matters: BIGSERIAL must be replaced before SERIAL.
SQLITE_REPLACEMENTS = [
    ("BIGSERIAL", "INTEGER PRIMARY KEY AUTOINCREMENT"),
    ("SERIAL", "INTEGER PRIMARY KEY AUTOINCREMENT"),
    ("BIGINT", "INTEGER"),
    ("UUID", "TEXT"),
    ("VARCHAR(3)", "TEXT"),
    ("VARCHAR(6)", "TEXT"),
    ("now()", "CURRENT_TIMESTAMP"),
    ("::text", ""),
    (r"CHECK (student ~ '^[\w-]+\..+$')", ""),
]

# Number of SQLite VM instructions between deadline checks
PROGRESS_STEP = 1000


def translate_to_sqlite(sql: str) -> str:
    """
    Convert Postgres DDL to the SQLite dialect.

    Examples:
        >>> translate_to_sqlite("deadline BIGINT NOT NULL, lab VARCHAR(3)")
        'deadline INTEGER NOT NULL, lab TEXT'
    """
    result = sql
    for source, target in SQLITE_REPLACEMENTS:
        result = result.replace(source, target)
    return result


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class SQLiteStore(ScoreStore):
    """Score store backed by a SQLite file (or an in-memory database)."""

    dialect = "sqlite"

    def __init__(self, engine, finish_event_type=DEFAULT_FINISH_EVENT, timeout=DEFAULT_TIMEOUT):
        super().__init__(engine, finish_event_type, timeout)
        # one writer at a time; :memory: stores share a single connection
        self._lock = threading.RLock()

    @classmethod
    def connect(
        cls,
        dsn: str,
        finish_event_type: str = DEFAULT_FINISH_EVENT,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> "SQLiteStore":
        """
        Open a store from a file path, ``:memory:`` or a ``sqlite://`` URL.
        """
        url = dsn if dsn.startswith("sqlite:") else f"sqlite:///{dsn}"
        kwargs = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": timeout or DEFAULT_TIMEOUT,
            },
        }
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # one shared connection, otherwise every thread sees its own empty database
            kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _enable_foreign_keys)
        logger.info(f"Connecting to SQLite at {url}")
        return cls(engine, finish_event_type, timeout)

    def translate_sql(self, sql: str) -> str:
        return translate_to_sqlite(sql)

    @contextmanager
    def _deadline(self, conn: Connection, timeout: float | None):
        if not timeout:
            yield
            return

        raw = conn.connection.dbapi_connection
        deadline = time.monotonic() + timeout

        def check() -> int:
            # non-zero aborts the running statement with "interrupted"
            return 1 if time.monotonic() > deadline else 0

        raw.set_progress_handler(check, PROGRESS_STEP)
        try:
            yield
        finally:
            raw.set_progress_handler(None, PROGRESS_STEP)
