"""
Shared persistence logic for entries, lab scores and score overrides.

All queries are portable SQL run through SQLAlchemy Core; dialect
subclasses only differ in how they connect, how they enforce the
per-query timeout and how they translate migration files.
"""
import logging
import os
from contextlib import contextmanager, nullcontext
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..dttm import DEFAULT_TIMESTAMP_FORMAT, format_timestamp
from ..models import Entry, LabScore, ScoreOverride, StatResult

logger = logging.getLogger(__name__)

DEFAULT_START_EVENT = "000_lab_start"
DEFAULT_FINISH_EVENT = "100_lab_finish"
DEFAULT_TIMEOUT = 5.0

ENTRY_COLUMNS = "timestamp, event_type, lab, student, course, comment"


class StorageError(Exception):
    """Raised when the underlying store fails; the cause is always chained."""
    pass


def split_statements(sql: str) -> list[str]:
    """
    Split a migration script into single statements.

    Full-line `--` comments are removed before splitting, so they may
    contain semicolons. Empty chunks are dropped.

    Examples:
        >>> split_statements("-- header; notes\\nCREATE TABLE a (x INT);\\n\\n;SELECT 1")
        ['CREATE TABLE a (x INT)', 'SELECT 1']
    """
    code = "\n".join(
        line for line in sql.splitlines()
        if not line.strip().startswith("--")
    )
    return [chunk.strip() for chunk in code.split(";") if chunk.strip()]


class ScoreStore:
    """
    Repository for raw events, manual overrides and lab metadata.

    "Not found" is never an error: lookups return None and listings
    return empty lists. Any failure of the database itself surfaces
    as StorageError.
    """

    dialect = "generic"

    def __init__(
        self,
        engine: Engine,
        finish_event_type: str = DEFAULT_FINISH_EVENT,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            engine: Configured SQLAlchemy engine
            finish_event_type: Event tag marking a finished lab
            timeout: Seconds a single query may run before it is aborted
                (None disables the limit)
        """
        self.engine = engine
        self.finish_event_type = finish_event_type
        self.timeout = timeout
        self._lock = nullcontext()

    def close(self) -> None:
        self.engine.dispose()

    # -- plumbing ------------------------------------------------------------

    def _deadline(self, conn: Connection, timeout: float | None):
        """Context manager that aborts statements running past timeout seconds."""
        return nullcontext()

    @contextmanager
    def _connect(self, action: str, timeout: float | None = None) -> Iterator[Connection]:
        """
        Run a unit of work in one transaction, wrapping database failures.

        timeout, when given, replaces the store-wide limit for this unit only.
        """
        if timeout is None:
            timeout = self.timeout
        try:
            with self._lock, self.engine.begin() as conn:
                with self._deadline(conn, timeout):
                    yield conn
        except SQLAlchemyError as exc:
            logger.error(f"Failed to {action} ({self.dialect}): {exc}")
            raise StorageError(f"failed to {action}: {exc}") from exc

    def translate_sql(self, sql: str) -> str:
        """Adapt a migration written for Postgres to this dialect."""
        return sql

    def apply_migrations(self, directory: str) -> list[str]:
        """
        Apply every ``*.sql`` file in directory, in file name order.

        Migration files use IF NOT EXISTS, so applying them again is a no-op.

        Returns:
            Names of the applied files
        """
        try:
            names = sorted(name for name in os.listdir(directory) if name.endswith(".sql"))
        except OSError as exc:
            raise StorageError(f"failed to read migrations directory {directory}: {exc}") from exc

        for name in names:
            path = os.path.join(directory, name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    sql = self.translate_sql(f.read())
            except OSError as exc:
                raise StorageError(f"failed to read migration {name}: {exc}") from exc

            logger.info(f"Applying migration: {name}")
            with self._connect(f"apply migration {name}") as conn:
                for statement in split_statements(sql):
                    conn.exec_driver_sql(statement)

        return names

    # -- entries -------------------------------------------------------------

    def create_entry(self, entry: Entry) -> None:
        with self._connect("create entry") as conn:
            conn.execute(
                text(f"""
                    INSERT INTO entries ({ENTRY_COLUMNS})
                    VALUES (:timestamp, :event_type, :lab, :student, :course, :comment)
                """),
                {
                    "timestamp": entry.timestamp,
                    "event_type": entry.event_type,
                    "lab": entry.lab,
                    "student": entry.student,
                    "course": entry.course,
                    "comment": entry.comment,
                },
            )

    def get_student_finish_event(
        self,
        course: str,
        lab: str,
        student: str,
        timeout: float | None = None,
    ) -> Entry | None:
        """Return the earliest finish event of a student for a lab, or None."""
        with self._connect("get finish event", timeout) as conn:
            row = conn.execute(
                text(f"""
                    SELECT {ENTRY_COLUMNS}
                    FROM entries
                    WHERE course = :course
                        AND lab = :lab
                        AND student = :student
                        AND event_type = :event_type
                    ORDER BY timestamp ASC
                    LIMIT 1
                """),
                {
                    "course": course,
                    "lab": lab,
                    "student": student,
                    "event_type": self.finish_event_type,
                },
            ).mappings().first()
        return Entry(**row) if row else None

    def list_entries(self, course: str) -> list[Entry]:
        with self._connect("list entries") as conn:
            rows = conn.execute(
                text(f"""
                    SELECT {ENTRY_COLUMNS}
                    FROM entries
                    WHERE course = :course
                    ORDER BY student, lab, timestamp ASC
                """),
                {"course": course},
            ).mappings().all()
        return [Entry(**row) for row in rows]

    def get_course_events_by_type(
        self,
        course: str,
        event_type: str,
        timeout: float | None = None,
    ) -> list[Entry]:
        """Entries of one type for a course, ordered by (student, lab, timestamp)."""
        with self._connect("get course events", timeout) as conn:
            rows = conn.execute(
                text(f"""
                    SELECT {ENTRY_COLUMNS}
                    FROM entries
                    WHERE course = :course AND event_type = :event_type
                    ORDER BY student, lab, timestamp ASC
                """),
                {"course": course, "event_type": event_type},
            ).mappings().all()
        return [Entry(**row) for row in rows]

    # -- score overrides -----------------------------------------------------

    def create_score_override(self, override: ScoreOverride) -> None:
        with self._connect("create score override") as conn:
            conn.execute(
                text("""
                    INSERT INTO score_overrides (student, lab, score, course, reason)
                    VALUES (:student, :lab, :score, :course, :reason)
                    ON CONFLICT (course, lab, student) DO UPDATE SET
                        score = excluded.score,
                        reason = excluded.reason
                """),
                {
                    "student": override.student,
                    "lab": override.lab,
                    "score": override.score,
                    "course": override.course,
                    "reason": override.reason,
                },
            )

    def get_score_override(
        self,
        course: str,
        lab: str,
        student: str,
        timeout: float | None = None,
    ) -> ScoreOverride | None:
        with self._connect("get score override", timeout) as conn:
            row = conn.execute(
                text("""
                    SELECT course, lab, student, score, reason
                    FROM score_overrides
                    WHERE course = :course
                        AND lab = :lab
                        AND student = :student
                """),
                {"course": course, "lab": lab, "student": student},
            ).mappings().first()
        return ScoreOverride(**row) if row else None

    def list_course_score_overrides(self, course: str) -> list[ScoreOverride]:
        with self._connect("list score overrides") as conn:
            rows = conn.execute(
                text("""
                    SELECT course, lab, student, score, reason
                    FROM score_overrides
                    WHERE course = :course
                    ORDER BY lab, student
                """),
                {"course": course},
            ).mappings().all()
        return [ScoreOverride(**row) for row in rows]

    # -- lab scores ----------------------------------------------------------

    def create_lab_score(self, lab_score: LabScore) -> None:
        with self._connect("register lab score") as conn:
            conn.execute(
                text("""
                    INSERT INTO lab_scores (course, lab, base_score, deadline)
                    VALUES (:course, :lab, :base_score, :deadline)
                    ON CONFLICT (course, lab) DO UPDATE SET
                        base_score = excluded.base_score,
                        deadline = excluded.deadline
                """),
                {
                    "course": lab_score.course,
                    "lab": lab_score.lab,
                    "base_score": lab_score.base_score,
                    "deadline": lab_score.deadline,
                },
            )

    def get_lab_score(
        self,
        course: str,
        lab: str,
        timeout: float | None = None,
    ) -> LabScore | None:
        with self._connect("get lab score", timeout) as conn:
            row = conn.execute(
                text("""
                    SELECT course, lab, base_score, deadline
                    FROM lab_scores
                    WHERE course = :course AND lab = :lab
                """),
                {"course": course, "lab": lab},
            ).mappings().first()
        return LabScore(**row) if row else None

    def list_lab_scores(self, course: str) -> list[LabScore]:
        with self._connect("fetch lab scores") as conn:
            rows = conn.execute(
                text("""
                    SELECT course, lab, base_score, deadline
                    FROM lab_scores
                    WHERE course = :course
                    ORDER BY lab ASC
                """),
                {"course": course},
            ).mappings().all()
        return [LabScore(**row) for row in rows]

    # -- analytics -----------------------------------------------------------

    def get_detailed_stats(
        self,
        course: str,
        start_event_type: str,
        finish_event_type: str,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        include_human_dttm: bool = False,
        timezone: str = "UTC",
        timeout: float | None = None,
    ) -> list[StatResult]:
        """
        Group a course's entries by (student, lab, course).

        Each group carries the number of start events, the first start,
        the first finish and their difference. Only groups with at least
        one start event are returned; the delta is passed through as is,
        so a finish recorded before the first start gives a negative value.

        timeout limits this query only, see _connect.
        """
        with self._connect("fetch stats", timeout) as conn:
            rows = conn.execute(
                text("""
                    WITH start_events AS (
                        SELECT
                            student,
                            lab,
                            course,
                            COUNT(*) AS start_count,
                            MIN(timestamp) AS first_run
                        FROM entries
                        WHERE course = :course
                            AND event_type = :start_event_type
                        GROUP BY student, lab, course
                    ),
                    finish_events AS (
                        SELECT
                            student,
                            lab,
                            course,
                            MIN(timestamp) AS first_finish
                        FROM entries
                        WHERE course = :course
                            AND event_type = :finish_event_type
                        GROUP BY student, lab, course
                    )
                    SELECT
                        se.student,
                        se.lab,
                        se.course,
                        se.start_count,
                        se.first_run,
                        fe.first_finish,
                        CASE
                            WHEN fe.first_finish IS NOT NULL
                            THEN fe.first_finish - se.first_run
                        END AS delta_seconds
                    FROM start_events se
                    LEFT JOIN finish_events fe
                        ON se.student = fe.student
                        AND se.lab = fe.lab
                        AND se.course = fe.course
                    ORDER BY se.student, se.lab
                """),
                {
                    "course": course,
                    "start_event_type": start_event_type,
                    "finish_event_type": finish_event_type,
                },
            ).mappings().all()

        results = []
        for row in rows:
            stat = StatResult(**row)
            if include_human_dttm:
                stat.human_first_run = format_timestamp(stat.first_run, timestamp_format, timezone)
                if stat.first_finish is not None:
                    stat.human_first_finish = format_timestamp(
                        stat.first_finish, timestamp_format, timezone
                    )
            results.append(stat)
        return results
