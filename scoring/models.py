"""
Data model for lab telemetry and grading configuration.

Plain dataclasses mirroring the rows the store reads and writes.
Shape validation lives here too, but it is only called by the outer
layers (HTTP handlers, bot commands); the grader assumes well-formed input.
"""
import re
from dataclasses import dataclass

# firstname.lastname, possibly with digits, underscores or dashes before the dot
STUDENT_PATTERN = re.compile(r"^[\w-]+\..+$")
MAX_LAB_LENGTH = 3
MAX_COURSE_LENGTH = 6


class ValidationError(ValueError):
    """Raised when an entity does not have the expected shape."""
    pass


@dataclass
class Entry:
    """One observed lab lifecycle event."""
    timestamp: int  # Unix epoch seconds
    event_type: str
    lab: str
    student: str
    course: str
    comment: str | None = None

    def to_row(self) -> list:
        """Compact array form used by the analytics listing endpoint."""
        return [
            self.timestamp,
            self.event_type,
            self.lab,
            self.student,
            self.course,
            self.comment,
        ]


@dataclass
class LabScore:
    """Grading configuration for one (course, lab) pair."""
    course: str
    lab: str
    base_score: int
    deadline: int  # Unix epoch seconds, inclusive


@dataclass
class ScoreOverride:
    """Manually assigned final grade; always wins over computed scores."""
    course: str
    lab: str
    student: str
    score: int
    reason: str | None = None


@dataclass
class StatResult:
    """Aggregated timings for one (student, lab, course) group."""
    student: str
    lab: str
    course: str
    start_count: int
    first_run: int
    first_finish: int | None = None
    delta_seconds: int | None = None
    human_first_run: str | None = None
    human_first_finish: str | None = None


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return value


def validate_student(student: str | None) -> str:
    """
    Check that a student id looks like ``firstname.lastname``.

    Examples:
        >>> validate_student("john.doe")
        'john.doe'
    """
    student = _require(student, "student")
    if not STUDENT_PATTERN.match(student):
        raise ValidationError(f"invalid student id '{student}', expected firstname.lastname")
    return student


def validate_lab(lab: str | None) -> str:
    lab = _require(lab, "lab")
    if len(lab) > MAX_LAB_LENGTH:
        raise ValidationError(f"lab code '{lab}' is longer than {MAX_LAB_LENGTH} characters")
    return lab


def validate_course(course: str | None) -> str:
    course = _require(course, "course")
    if len(course) > MAX_COURSE_LENGTH:
        raise ValidationError(f"course code '{course}' is longer than {MAX_COURSE_LENGTH} characters")
    return course


def validate_entry(entry: Entry) -> Entry:
    """Validate an incoming entry before it is stored."""
    _require(entry.event_type, "event_type")
    validate_lab(entry.lab)
    validate_student(entry.student)
    validate_course(entry.course)
    if entry.timestamp is None or entry.timestamp < 0:
        raise ValidationError("timestamp must be a non-negative epoch value")
    return entry


def validate_lab_score(lab_score: LabScore) -> LabScore:
    validate_course(lab_score.course)
    validate_lab(lab_score.lab)
    if lab_score.base_score < 0:
        raise ValidationError("base score must not be negative")
    return lab_score


def validate_score_override(override: ScoreOverride) -> ScoreOverride:
    validate_course(override.course)
    validate_lab(override.lab)
    validate_student(override.student)
    return override
