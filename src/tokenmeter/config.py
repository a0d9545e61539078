import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from tokenmeter.budget import suggest_budgets
from tokenmeter.errors import ConfigurationError
from tokenmeter.estimator import DEFAULT_PROJECTS_DIR, DEFAULT_STATS_CACHE
from tokenmeter.models import WindowWeights
from tokenmeter.selector import DEFAULT_MAX_COUNT
from tokenmeter.weighting import DEFAULT_DAILY_WEIGHTS, DEFAULT_WEEKLY_WEIGHTS

_ENV_PREFIX = "TOKENMETER_"


def parse_token_limit(raw: "str | None") -> "int | None":
    """
    parses a token limit, accepting "500,000", "500_000" and
    surrounding whitespace. Empty input and non-positive values
    mean "no limit".
    """
    if raw is None:
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None

    normalized = trimmed.replace(",", "").replace("_", "").replace(" ", "")
    try:
        value = int(normalized)
    except ValueError:
        raise ConfigurationError(
            f"invalid token limit {raw!r}: use digits only, e.g. 500000 or 500,000"
        ) from None
    return value if value > 0 else None


def parse_anchor(raw: "str | None") -> "datetime | None":
    """
    parses an ISO-8601 window anchor. Naive values are taken as
    local time.
    """
    if raw is None or not raw.strip():
        return None

    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        anchor = datetime.fromisoformat(text)
    except ValueError:
        raise ConfigurationError(f"invalid window anchor {raw!r}") from None

    if anchor.tzinfo is None:
        anchor = anchor.astimezone()
    return anchor


def parse_weight(raw: "str | None") -> "float | None":
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigurationError(f"invalid cache weight {raw!r}") from None


def parse_positive_int(raw: "str | None", name: "str") -> "int | None":
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _weights(
    defaults: "WindowWeights",
    cache_creation: "float | None",
    cache_read: "float | None",
) -> "WindowWeights":
    if cache_creation is None:
        cache_creation = defaults.cache_creation_weight
    if cache_read is None:
        cache_read = defaults.cache_read_weight
    return WindowWeights(
        cache_creation_weight=cache_creation,
        cache_read_weight=cache_read,
    )


@dataclass
class Config:
    # listen_address: format ":9186" or
    # "0.0.0.0:9186"
    listen_address: "str" = ":9186"
    # refresh interval in seconds
    refresh_interval: "int" = 300
    log_level: "str" = "info"
    # "console" or "json"
    log_format: "str" = "console"
    # print one report and exit instead of serving metrics
    once: "bool" = False

    projects_dir: "Path" = DEFAULT_PROJECTS_DIR
    stats_cache_path: "Path" = DEFAULT_STATS_CACHE

    # progress bar denominators; None falls back to suggested budgets
    daily_token_limit: "int | None" = None
    weekly_token_limit: "int | None" = None

    # recurring reset points; None means a purely relative window
    daily_anchor: "datetime | None" = None
    weekly_anchor: "datetime | None" = None

    daily_weights: "WindowWeights" = DEFAULT_DAILY_WEIGHTS
    weekly_weights: "WindowWeights" = DEFAULT_WEEKLY_WEIGHTS

    max_files: "int" = DEFAULT_MAX_COUNT
    max_file_age_days: "int" = 30

    @classmethod
    def from_env(cls) -> "Config":
        """
        builds a Config from TOKENMETER_* variables. Invalid values
        raise ConfigurationError here so the engine never sees them.
        """

        def env(name: "str") -> "str | None":
            return os.environ.get(_ENV_PREFIX + name)

        config = cls(
            daily_token_limit=parse_token_limit(env("DAILY_LIMIT")),
            weekly_token_limit=parse_token_limit(env("WEEKLY_LIMIT")),
            daily_anchor=parse_anchor(env("DAILY_ANCHOR")),
            weekly_anchor=parse_anchor(env("WEEKLY_ANCHOR")),
            daily_weights=_weights(
                DEFAULT_DAILY_WEIGHTS,
                parse_weight(env("DAILY_CACHE_CREATION_WEIGHT")),
                parse_weight(env("DAILY_CACHE_READ_WEIGHT")),
            ),
            weekly_weights=_weights(
                DEFAULT_WEEKLY_WEIGHTS,
                parse_weight(env("WEEKLY_CACHE_CREATION_WEIGHT")),
                parse_weight(env("WEEKLY_CACHE_READ_WEIGHT")),
            ),
        )

        projects_dir = env("PROJECTS_DIR")
        if projects_dir:
            config.projects_dir = Path(projects_dir).expanduser()
        stats_cache = env("STATS_CACHE")
        if stats_cache:
            config.stats_cache_path = Path(stats_cache).expanduser()

        max_files = parse_positive_int(env("MAX_FILES"), "TOKENMETER_MAX_FILES")
        if max_files is not None:
            config.max_files = max_files
        max_age = parse_positive_int(
            env("MAX_FILE_AGE_DAYS"), "TOKENMETER_MAX_FILE_AGE_DAYS"
        )
        if max_age is not None:
            config.max_file_age_days = max_age

        return config

    @property
    def max_file_age_seconds(self) -> "int":
        return int(timedelta(days=self.max_file_age_days).total_seconds())

    def resolved_limits(self) -> "tuple[int, int]":
        """
        returns (daily, weekly) limits, filling unset ones from the
        suggested budgets.
        """
        suggested = suggest_budgets()
        daily = self.daily_token_limit or suggested.daily_token_budget
        weekly = self.weekly_token_limit or suggested.weekly_token_budget
        return daily, weekly
