"""
Scoring service: one object wiring the store, the grader and the stats
aggregator together for the HTTP API, the bot and the exporter.
"""
import logging
from collections.abc import Mapping

from .config import Config
from .grader import Grader
from .stats import LabStats, StatsAggregator
from .store import ScoreStore, StorageError, new_store

logger = logging.getLogger(__name__)


class ScoringService:
    """Course level operations on top of a ScoreStore."""

    def __init__(self, config: Config, store: ScoreStore):
        self.config = config
        self.store = store
        self.grader = Grader(store, config.scoring.rules())
        self.stats = StatsAggregator(
            store,
            start_event_type=config.events.start,
            finish_event_type=config.events.finish,
            timestamp_format=config.display.timestamp_format,
            timezone=config.display.timezone,
        )

    @classmethod
    def from_config(cls, config: Config) -> "ScoringService":
        """Open the configured store and bring its schema up to date."""
        store = new_store(
            config.database.dsn,
            finish_event_type=config.events.finish,
            timeout=config.database.timeout,
        )
        applied = store.apply_migrations(config.database.migrations_dir)
        logger.info(f"Store ready ({store.dialect}), {len(applied)} migration file(s) checked")
        return cls(config, store)

    def close(self) -> None:
        self.store.close()

    def validate_headers(self, headers: Mapping[str, str]) -> bool:
        """
        Check the configured required headers.

        Header names and values are compared case-insensitively.
        """
        lowered = {name.lower(): value for name, value in headers.items()}
        for required in self.config.api.required_headers:
            value = lowered.get(required.name.lower())
            if value is None or value.lower() != required.value.lower():
                logger.debug(f"Required header check failed: {required.name}")
                return False
        return True

    def get_scoring(self, course: str, timeout: float | None = None) -> dict[str, dict[str, int]]:
        """
        Compute scores for every student who finished at least one lab.

        A student whose score lookup fails is left out of the result
        entirely rather than reported with partial data. timeout applies
        to each store query separately.

        Returns:
            Mapping student -> lab -> score
        """
        finish_events = self.store.get_course_events_by_type(
            course, self.config.events.finish, timeout=timeout
        )

        labs_by_student: dict[str, list[str]] = {}
        for event in finish_events:
            labs = labs_by_student.setdefault(event.student, [])
            if event.lab not in labs:
                labs.append(event.lab)

        result: dict[str, dict[str, int]] = {}
        for student, labs in labs_by_student.items():
            try:
                scores = {
                    lab: self.grader.score_for_student(course, lab, student, timeout=timeout)
                    for lab in labs
                }
            except StorageError as exc:
                logger.warning(f"Skipping {student} in {course} scoring: {exc}")
                continue
            result[student] = scores

        logger.info(f"Scored {len(result)} student(s) for course {course}")
        return result

    def get_detailed_stats(
        self,
        course: str,
        include_human_dttm: bool = False,
        timeout: float | None = None,
    ) -> dict[str, dict[str, LabStats]]:
        return self.stats.get_detailed_stats(course, include_human_dttm, timeout=timeout)
