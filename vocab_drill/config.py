"""Configuration loading from YAML and environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from vocab_drill.core.models import MasteryRule
from vocab_drill.core.queue import (
    DEFAULT_QUEUE_SIZE,
    HALF_LIFE_DAYS,
    REPLACEMENT_CANDIDATES,
    REVIEW_RATIO,
    TieBreak,
)
from vocab_drill.core.progress import MINUTES_PER_WORD


CONFIG_ENV = "VOCAB_DRILL_CONFIG"
DATA_ENV = "VOCAB_DRILL_DATA"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class DataSettings:
    base_path: Path = Path("data")
    database: str = "vocab.db"
    packs_dir: str = "packs"

    @property
    def database_path(self) -> Path:
        return self.base_path / self.database

    @property
    def packs_path(self) -> Path:
        return self.base_path / self.packs_dir


@dataclass
class LearningSettings:
    queue_size: int = DEFAULT_QUEUE_SIZE
    half_life_days: float = HALF_LIFE_DAYS
    review_ratio: float = REVIEW_RATIO
    mastery_rule: MasteryRule = MasteryRule.LIFETIME
    tie_break: TieBreak = TieBreak.RECENCY
    replacement_candidates: int = REPLACEMENT_CANDIDATES
    minutes_per_word: float = MINUTES_PER_WORD


@dataclass
class LoggingSettings:
    level: str = "WARNING"
    file: Optional[str] = None


@dataclass
class Settings:
    data: DataSettings = field(default_factory=DataSettings)
    learning: LearningSettings = field(default_factory=LearningSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: Optional[Path] = None


def _find_config(config_path: Optional[str]) -> Optional[str]:
    paths_to_try = [
        config_path,
        os.environ.get(CONFIG_ENV),
        "config.yaml",
        os.path.expanduser("~/.config/vocab-drill/config.yaml"),
    ]
    for path in paths_to_try:
        if path and os.path.exists(path):
            return path
    return None


def _enum_value(enum_cls, value, default):
    if value is None:
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise ValueError(
            f"Unknown {enum_cls.__name__} '{value}', "
            f"expected one of {[e.value for e in enum_cls]}"
        )


def parse_settings(raw: dict) -> Settings:
    """Build Settings from a parsed YAML mapping, validating values."""
    data = raw.get("data") or {}
    learning = raw.get("learning") or {}
    log = raw.get("logging") or {}

    defaults = LearningSettings()
    settings = Settings(
        data=DataSettings(
            base_path=Path(data.get("base_path", "data")),
            database=data.get("database", "vocab.db"),
            packs_dir=data.get("packs_dir", "packs"),
        ),
        learning=LearningSettings(
            queue_size=int(learning.get("queue_size", defaults.queue_size)),
            half_life_days=float(learning.get("half_life_days", defaults.half_life_days)),
            review_ratio=float(learning.get("review_ratio", defaults.review_ratio)),
            mastery_rule=_enum_value(
                MasteryRule, learning.get("mastery_rule"), defaults.mastery_rule
            ),
            tie_break=_enum_value(TieBreak, learning.get("tie_break"), defaults.tie_break),
            replacement_candidates=int(
                learning.get("replacement_candidates", defaults.replacement_candidates)
            ),
            minutes_per_word=float(
                learning.get("minutes_per_word", defaults.minutes_per_word)
            ),
        ),
        logging=LoggingSettings(
            level=str(log.get("level", "WARNING")).upper(),
            file=log.get("file"),
        ),
    )

    if settings.learning.queue_size <= 0:
        raise ValueError("learning.queue_size must be positive")
    if settings.learning.half_life_days <= 0:
        raise ValueError("learning.half_life_days must be positive")
    if not 0 <= settings.learning.review_ratio <= 1:
        raise ValueError("learning.review_ratio must be between 0 and 1")
    if settings.learning.minutes_per_word <= 0:
        raise ValueError("learning.minutes_per_word must be positive")
    if settings.logging.level not in LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {list(LOG_LEVELS)}")
    return settings


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load configuration from file.

    Tries an explicit path, then $VOCAB_DRILL_CONFIG, then ./config.yaml,
    then ~/.config/vocab-drill/config.yaml, and falls back to defaults.
    $VOCAB_DRILL_DATA overrides the data directory.
    """
    load_dotenv()

    raw = {}
    path = _find_config(config_path)
    if path:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}

    settings = parse_settings(raw)
    settings.source = Path(path) if path else None

    data_dir = os.environ.get(DATA_ENV)
    if data_dir:
        settings.data.base_path = Path(data_dir)
    return settings
