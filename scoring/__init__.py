"""
Scoring module for lab telemetry.

This module contains the pieces used to grade labs from recorded events:
- models: Entry, LabScore, ScoreOverride and shape validation
- penalty: Late penalty rules and score calculation
- dttm: Timestamp and duration formatting
- store: SQLite and Postgres persistence
- grader: Per-student score orchestration
- stats: Per-student lab timing statistics
- service: Course level operations used by the API, bot and exporter
- config: YAML configuration
"""

from .models import (
    Entry,
    LabScore,
    ScoreOverride,
    StatResult,
    ValidationError,
    validate_entry,
    validate_lab_score,
    validate_score_override,
    validate_student,
)

from .penalty import (
    LatePenaltyRules,
    calculate_score,
    late_days,
)

from .dttm import (
    format_duration,
    format_timestamp,
)

from .store import (
    ScoreStore,
    SQLiteStore,
    PostgresStore,
    StorageError,
    new_store,
)

from .grader import (
    Grader,
    ScoreLookupError,
)

from .stats import (
    StatsAggregator,
    LabStats,
    HumanDttms,
)

from .config import (
    Config,
    ConfigError,
    load_config,
)

from .service import ScoringService

__all__ = [
    # models
    "Entry",
    "LabScore",
    "ScoreOverride",
    "StatResult",
    "ValidationError",
    "validate_entry",
    "validate_lab_score",
    "validate_score_override",
    "validate_student",
    # penalty
    "LatePenaltyRules",
    "calculate_score",
    "late_days",
    # dttm
    "format_duration",
    "format_timestamp",
    # store
    "ScoreStore",
    "SQLiteStore",
    "PostgresStore",
    "StorageError",
    "new_store",
    # grader
    "Grader",
    "ScoreLookupError",
    # stats
    "StatsAggregator",
    "LabStats",
    "HumanDttms",
    # config
    "Config",
    "ConfigError",
    "load_config",
    # service
    "ScoringService",
]
