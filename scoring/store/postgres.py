"""
Postgres flavour of the score store.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection

from .base import DEFAULT_FINISH_EVENT, DEFAULT_TIMEOUT, ScoreStore

logger = logging.getLogger(__name__)


def normalize_dsn(dsn: str) -> str:
    """
    Make a libpq style DSN acceptable to SQLAlchemy.

    Examples:
        >>> normalize_dsn("postgres://u:p@db/labs")
        'postgresql://u:p@db/labs'
        >>> normalize_dsn("postgresql+psycopg2://db/labs")
        'postgresql+psycopg2://db/labs'
    """
    if dsn.startswith("postgres://"):
        return "postgresql://" + dsn[len("postgres://"):]
    return dsn


class PostgresStore(ScoreStore):
    """Score store backed by Postgres through psycopg2."""

    dialect = "postgres"

    @classmethod
    def connect(
        cls,
        dsn: str,
        finish_event_type: str = DEFAULT_FINISH_EVENT,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> "PostgresStore":
        connect_args = {}
        if timeout:
            connect_args["connect_timeout"] = max(1, int(timeout))

        engine = create_engine(
            normalize_dsn(dsn),
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        logger.info(f"Connecting to Postgres at {engine.url.render_as_string(hide_password=True)}")
        return cls(engine, finish_event_type, timeout)

    @contextmanager
    def _deadline(self, conn: Connection, timeout: float | None):
        if timeout:
            # scoped to the current transaction, see ScoreStore._connect
            conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(timeout * 1000)}")
        yield
