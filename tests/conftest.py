"""
Pytest configuration and shared fixtures for testing.
"""
import pytest
import os
import sys
from unittest.mock import MagicMock

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scoring.config import Config, HeaderRequirement, ScoringConfig
from scoring.grader import Grader
from scoring.models import Entry, LabScore
from scoring.penalty import LatePenaltyRules
from scoring.service import ScoringService
from scoring.store import ScoreStore, SQLiteStore

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")

DAY = 24 * 60 * 60
DEADLINE = 1_700_000_000


@pytest.fixture
def rules():
    """Late penalty rules used throughout the tests."""
    return LatePenaltyRules(
        late_days_modifiers={1: -1, 2: -2, 3: -3},
        default_late_penalty=0.5,
        max_late_days=7,
        extra_late_penalty=1,
    )


@pytest.fixture
def store():
    """In-memory SQLite store with the schema applied."""
    store = SQLiteStore.connect(":memory:")
    store.apply_migrations(MIGRATIONS_DIR)
    yield store
    store.close()


@pytest.fixture
def mock_store():
    """Store mock where every lookup finds nothing."""
    mock = MagicMock(spec=ScoreStore)
    mock.get_score_override.return_value = None
    mock.get_student_finish_event.return_value = None
    mock.get_lab_score.return_value = None
    return mock


@pytest.fixture
def grader(store, rules):
    return Grader(store, rules)


@pytest.fixture
def config():
    """Config with the test penalty rules and one required header."""
    config = Config()
    config.scoring = ScoringConfig(
        late_days_modifiers={1: -1, 2: -2, 3: -3},
        default_late_penalty=0.5,
        max_late_days=7,
        extra_late_penalty=1,
    )
    config.api.required_headers = [HeaderRequirement(name="X-Lab-Client", value="labtool")]
    config.database.dsn = ":memory:"
    config.database.migrations_dir = MIGRATIONS_DIR
    return config


@pytest.fixture
def service(config, store):
    return ScoringService(config, store)


@pytest.fixture
def make_entry():
    """Factory for entries with sensible defaults."""
    def _make(student="john.doe", lab="01", event_type="100_lab_finish", timestamp=DEADLINE,
              course="os", comment=None):
        return Entry(
            timestamp=timestamp,
            event_type=event_type,
            lab=lab,
            student=student,
            course=course,
            comment=comment,
        )
    return _make


@pytest.fixture
def lab_01(store):
    """Lab 01 of course 'os' worth 10 points."""
    lab_score = LabScore(course="os", lab="01", base_score=10, deadline=DEADLINE)
    store.create_lab_score(lab_score)
    return lab_score
