"""
Late penalty calculation for lab submissions.

This module contains pure functions for turning a submission time,
a lab's base score and deadline into a final grade.
"""
from dataclasses import dataclass, field

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class LatePenaltyRules:
    """
    Configured late penalty policy.

    late_days_modifiers maps an exact number of late days to a point delta
    (usually negative). Days missing from the table fall back to the
    multiplicative default_late_penalty, and past max_late_days the flat
    extra_late_penalty is subtracted on top of it.
    """
    late_days_modifiers: dict[int, int] = field(default_factory=dict)
    default_late_penalty: float = 1.0
    max_late_days: int = 0
    extra_late_penalty: int = 0


def late_days(deadline: int, submit_time: int) -> int:
    """
    Count late days, rounding any part of a day up to a full day.

    Args:
        deadline: Deadline as Unix epoch seconds (inclusive)
        submit_time: Submission time as Unix epoch seconds

    Returns:
        Number of late days (0 if submitted on time)

    Examples:
        >>> late_days(1000, 1000)
        0
        >>> late_days(1000, 1001)
        1
        >>> late_days(0, SECONDS_PER_DAY + 60)
        2
    """
    if submit_time <= deadline:
        return 0

    days, remainder = divmod(submit_time - deadline, SECONDS_PER_DAY)
    # Round up: any part of a day counts as a full day
    return days + (1 if remainder > 0 else 0)


def _clamp(score: int) -> int:
    return score if score > 0 else 0


def calculate_score(
    base_score: int,
    deadline: int,
    submit_time: int,
    rules: LatePenaltyRules,
) -> int:
    """
    Calculate the final score for a submission.

    On-time submissions keep the base score. Late ones get the modifier
    for their exact day count when the table has one; otherwise the base
    score is multiplied by the default penalty (truncated toward zero),
    and past max_late_days the extra flat penalty is also subtracted.
    Penalized scores never go below zero.

    Examples:
        >>> rules = LatePenaltyRules({1: -1, 2: -2, 3: -3}, 0.5, 7, 1)
        >>> calculate_score(10, 0, 0, rules)
        10
        >>> calculate_score(10, 0, 1, rules)
        9
        >>> calculate_score(10, 0, 6 * SECONDS_PER_DAY, rules)
        5
        >>> calculate_score(10, 0, 10 * SECONDS_PER_DAY, rules)
        4
    """
    if submit_time <= deadline:
        return base_score

    days = late_days(deadline, submit_time)

    modifier = rules.late_days_modifiers.get(days)
    if modifier is not None:
        return _clamp(base_score + modifier)

    penalized = int(base_score * rules.default_late_penalty)
    if days <= rules.max_late_days:
        return _clamp(penalized)

    return _clamp(penalized - rules.extra_late_penalty)
