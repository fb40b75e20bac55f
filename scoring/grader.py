"""
Lab score orchestrator.

This module provides the Grader class that combines the score override,
the student's first finish event and the lab configuration into a final
grade, using the pure penalty rules from scoring.penalty.
"""
import logging

from .penalty import LatePenaltyRules, calculate_score
from .store import ScoreStore, StorageError

logger = logging.getLogger(__name__)


class ScoreLookupError(StorageError):
    """A store lookup failed while scoring; stage names the failed lookup."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class Grader:
    """
    Computes lab scores for students.

    The grader holds only read-only configuration and never writes to
    the store, so one instance can be shared between concurrent callers.
    """

    def __init__(self, store: ScoreStore, rules: LatePenaltyRules):
        """
        Initialize grader.

        Args:
            store: Store providing overrides, finish events and lab scores
            rules: Late penalty policy
        """
        self.store = store
        self.rules = rules

    def calculate_score(self, base_score: int, deadline: int, submit_time: int) -> int:
        """Apply the configured late penalty rules to one submission."""
        return calculate_score(base_score, deadline, submit_time, self.rules)

    def score_for_student(
        self,
        course: str,
        lab: str,
        student: str,
        timeout: float | None = None,
    ) -> int:
        """
        Determine the final score of a student for a lab.

        Steps:
        1. A score override, if present, is returned as is
        2. No finish event means the lab was never finished: 0
        3. No lab score configuration means the lab is ungraded: 0
        4. Otherwise the penalty rules are applied to the first finish

        Args:
            course: Course code
            lab: Lab code
            student: Student id (firstname.lastname)
            timeout: Seconds each lookup may take; None uses the store limit

        Returns:
            Final integer score

        Raises:
            ScoreLookupError: If any of the store lookups fails
        """
        try:
            override = self.store.get_score_override(course, lab, student, timeout=timeout)
        except StorageError as exc:
            raise ScoreLookupError("override", f"failed to check score override: {exc}") from exc
        if override is not None:
            logger.debug(f"Override for {course}/{lab}/{student}: {override.score}")
            return override.score

        try:
            finish_event = self.store.get_student_finish_event(course, lab, student, timeout=timeout)
        except StorageError as exc:
            raise ScoreLookupError("finish_event", f"failed to get finish event: {exc}") from exc
        if finish_event is None:
            return 0

        try:
            lab_score = self.store.get_lab_score(course, lab, timeout=timeout)
        except StorageError as exc:
            raise ScoreLookupError("lab_score", f"failed to get lab score: {exc}") from exc
        if lab_score is None:
            logger.debug(f"Lab {course}/{lab} has no score configured")
            return 0

        score = self.calculate_score(lab_score.base_score, lab_score.deadline, finish_event.timestamp)
        logger.debug(
            f"Score for {course}/{lab}/{student}: {score} "
            f"(base {lab_score.base_score}, finished at {finish_event.timestamp}, deadline {lab_score.deadline})"
        )
        return score
