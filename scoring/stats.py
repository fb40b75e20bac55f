"""
Per-student lab timing statistics.

A read-only view over the store: first start, first finish and the time
between them for every (student, lab) a course has events for.
"""
from dataclasses import dataclass

from .dttm import DEFAULT_TIMESTAMP_FORMAT, format_duration
from .store import ScoreStore


@dataclass
class HumanDttms:
    """Human readable rendering of a LabStats record."""
    first_run: str
    first_finish: str | None = None
    delta: str | None = None

    def to_dict(self) -> dict:
        data = {"first_run": self.first_run}
        if self.first_finish is not None:
            data["first_finish"] = self.first_finish
        if self.delta is not None:
            data["delta_first_run_first_finish"] = self.delta
        return data


@dataclass
class LabStats:
    """Timing summary for one student and one lab."""
    start_counts: int
    first_run: int
    first_finish: int | None = None
    delta_seconds: int | None = None
    human_dttms: HumanDttms | None = None

    def to_dict(self) -> dict:
        """JSON shape; absent optional values are omitted."""
        data = {
            "start_counts": self.start_counts,
            "first_run": self.first_run,
        }
        if self.first_finish is not None:
            data["first_finish"] = self.first_finish
        if self.delta_seconds is not None:
            data["delta_first_run_first_finish"] = self.delta_seconds
        if self.human_dttms is not None:
            data["human_dttms"] = self.human_dttms.to_dict()
        return data


class StatsAggregator:
    """Builds per-student stats for a course from the grouped store rows."""

    def __init__(
        self,
        store: ScoreStore,
        start_event_type: str,
        finish_event_type: str,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        timezone: str = "UTC",
    ):
        self.store = store
        self.start_event_type = start_event_type
        self.finish_event_type = finish_event_type
        self.timestamp_format = timestamp_format
        self.timezone = timezone

    def get_detailed_stats(
        self,
        course: str,
        include_human_dttm: bool = False,
        timeout: float | None = None,
    ) -> dict[str, dict[str, LabStats]]:
        """
        Collect timing stats for a course.

        timeout caps the store query; None uses the store limit.

        Returns:
            Mapping student -> "course/lab" -> LabStats; empty when the
            course has no start events
        """
        results = self.store.get_detailed_stats(
            course,
            self.start_event_type,
            self.finish_event_type,
            self.timestamp_format,
            include_human_dttm,
            self.timezone,
            timeout=timeout,
        )

        stats: dict[str, dict[str, LabStats]] = {}
        for row in results:
            stat = LabStats(
                start_counts=row.start_count,
                first_run=row.first_run,
                first_finish=row.first_finish,
                delta_seconds=row.delta_seconds,
            )

            if include_human_dttm:
                stat.human_dttms = HumanDttms(
                    first_run=row.human_first_run or "",
                    first_finish=row.human_first_finish,
                )
                if row.delta_seconds is not None:
                    stat.human_dttms.delta = format_duration(row.delta_seconds)

            stats.setdefault(row.student, {})[f"{row.course}/{row.lab}"] = stat

        return stats
