"""
Service configuration.

Settings come from a YAML file; secrets and deployment specific values
can be overridden through environment variables (a .env file is honoured).
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .dttm import DEFAULT_TIMESTAMP_FORMAT
from .penalty import LatePenaltyRules
from .store import DEFAULT_FINISH_EVENT, DEFAULT_START_EVENT, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_EMOJI_VARIANTS = ["🥐", "🍩", "🧁", "🍪"]


class ConfigError(Exception):
    """Raised when the configuration file is missing or malformed."""
    pass


@dataclass
class HeaderRequirement:
    name: str
    value: str


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 9999


@dataclass
class ApiConfig:
    student_id_header: str = "X-Student-Id"
    required_headers: list[HeaderRequirement] = field(default_factory=list)


@dataclass
class DatabaseConfig:
    dsn: str = "labscore.db"
    migrations_dir: str = "migrations"
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class DisplayConfig:
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    timezone: str = "UTC"


@dataclass
class ScoringConfig:
    late_days_modifiers: dict[int, int] = field(default_factory=dict)
    default_late_penalty: float = 1.0
    max_late_days: int = 0
    extra_late_penalty: int = 0

    def rules(self) -> LatePenaltyRules:
        return LatePenaltyRules(
            late_days_modifiers=dict(self.late_days_modifiers),
            default_late_penalty=self.default_late_penalty,
            max_late_days=self.max_late_days,
            extra_late_penalty=self.extra_late_penalty,
        )


@dataclass
class EventsConfig:
    start: str = DEFAULT_START_EVENT
    finish: str = DEFAULT_FINISH_EVENT


@dataclass
class BotConfig:
    token: str | None = None
    admin_ids: list[int] = field(default_factory=list)


@dataclass
class GSheetJob:
    """One spreadsheet the exporter keeps up to date for a course."""
    sheet_id: str
    sheet_name: str
    credentials_path: str = "credentials.json"
    students_range: str = "A4:A"
    first_student_row: int = 4
    labs: dict[str, str] = field(default_factory=dict)  # lab code -> column letter
    scoring: bool = False
    timestamp_range: str = "A1"
    interval_minutes: int = 30

    def __post_init__(self):
        # unquoted lab codes come out of YAML as ints
        self.labs = {str(lab): column for lab, column in self.labs.items()}


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    bot: BotConfig = field(default_factory=BotConfig)
    gsheet: dict[str, list[GSheetJob]] = field(default_factory=dict)
    emoji_variants: list[str] = field(default_factory=lambda: list(DEFAULT_EMOJI_VARIANTS))


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def parse_late_days_modifiers(raw: dict | None) -> dict[int, int]:
    """
    Normalize the late day table; YAML may give the day counts as strings.

    Examples:
        >>> parse_late_days_modifiers({"1": -1, 2: "-2"})
        {1: -1, 2: -2}
    """
    modifiers = {}
    for day, delta in (raw or {}).items():
        try:
            modifiers[int(day)] = int(delta)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid late_days_modifiers entry: {day!r}: {delta!r}")
    return modifiers


def parse_config(data: dict[str, Any]) -> Config:
    """Build a Config from already parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    server = _section(data, "server")
    api = _section(data, "api")
    database = _section(data, "database")
    display = _section(data, "display")
    scoring = _section(data, "scoring")
    events = _section(data, "events")
    bot = _section(data, "bot")

    try:
        default_penalty = float(scoring.get("default_late_penalty", 1.0))
        config = Config(
            server=ServerConfig(
                host=server.get("host", "0.0.0.0"),
                port=int(server.get("port", 9999)),
            ),
            api=ApiConfig(
                student_id_header=api.get("student_id_header", "X-Student-Id"),
                required_headers=[
                    HeaderRequirement(name=h["name"], value=str(h["value"]))
                    for h in api.get("required_headers") or []
                ],
            ),
            database=DatabaseConfig(
                dsn=database.get("dsn", "labscore.db"),
                migrations_dir=database.get("migrations_dir", "migrations"),
                timeout=float(database.get("timeout", DEFAULT_TIMEOUT)),
            ),
            display=DisplayConfig(
                timestamp_format=display.get("timestamp_format", DEFAULT_TIMESTAMP_FORMAT),
                timezone=display.get("timezone", "UTC"),
            ),
            scoring=ScoringConfig(
                late_days_modifiers=parse_late_days_modifiers(scoring.get("late_days_modifiers")),
                default_late_penalty=default_penalty,
                max_late_days=int(scoring.get("max_late_days", 0)),
                extra_late_penalty=int(scoring.get("extra_late_penalty", 0)),
            ),
            events=EventsConfig(
                start=events.get("start", DEFAULT_START_EVENT),
                finish=events.get("finish", DEFAULT_FINISH_EVENT),
            ),
            bot=BotConfig(
                token=bot.get("token"),
                admin_ids=[int(admin_id) for admin_id in bot.get("admin_ids") or []],
            ),
            gsheet={
                course: [GSheetJob(**job) for job in jobs]
                for course, jobs in _section(data, "gsheet").items()
            },
            emoji_variants=list(data.get("emoji_variants") or DEFAULT_EMOJI_VARIANTS),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    if not 0 < default_penalty <= 1:
        raise ConfigError(
            f"scoring.default_late_penalty must be in (0, 1], got {default_penalty}"
        )

    try:
        ZoneInfo(config.display.timezone)
    except (ZoneInfoNotFoundError, TypeError, ValueError) as exc:
        raise ConfigError(f"Unknown display.timezone: {config.display.timezone!r}") from exc

    return config


def apply_env_overrides(config: Config) -> Config:
    """Let DATABASE_DSN and BOT_TOKEN from the environment win over the file."""
    dsn = os.getenv("DATABASE_DSN")
    if dsn:
        config.database.dsn = dsn
    token = os.getenv("BOT_TOKEN")
    if token:
        config.bot.token = token
    return config


def load_config(path: str | None = None) -> Config:
    """
    Load configuration from a YAML file.

    Args:
        path: Config file path; defaults to $LABSCORE_CONFIG or config.yaml

    Raises:
        ConfigError: If the file cannot be read or contains invalid values
    """
    load_dotenv()
    path = path or os.getenv("LABSCORE_CONFIG", DEFAULT_CONFIG_PATH)

    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Error parsing YAML in {path}: {exc}") from exc

    config = apply_env_overrides(parse_config(data))
    logger.debug(f"Loaded scoring config: {config.scoring}")
    return config
