import math
from dataclasses import dataclass
from datetime import datetime

from tokenmeter.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord represents a single usage event
    extracted from one log line.
    """

    # dedup key, typically the message id
    identifier: "str"
    input_tokens: "int"
    output_tokens: "int"
    cache_creation_tokens: "int"
    cache_read_tokens: "int"
    timestamp: "datetime"

    @property
    def total_tokens(self) -> "int":
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )


@dataclass(frozen=True, slots=True)
class WindowWeights:
    """
    WindowWeights holds the discount applied to cache tokens
    for one window. Values are validated here so the engine
    never receives an invalid pair.
    """

    cache_creation_weight: "float"
    cache_read_weight: "float"

    def __post_init__(self) -> "None":
        for name in ("cache_creation_weight", "cache_read_weight"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if math.isnan(value) or math.isinf(value) or value < 0:
                raise ConfigurationError(
                    f"{name} must be a finite non-negative number, got {value!r}"
                )


@dataclass(frozen=True, slots=True)
class WindowBounds:
    start: "datetime"
    end: "datetime"


@dataclass(frozen=True, slots=True)
class UsageWindow:
    """
    UsageWindow is one progress bar worth of data. Any field
    may be missing; a missing progress means "no data", not 0%.
    """

    used_tokens: "int | None" = None
    token_limit: "int | None" = None
    reset_at: "datetime | None" = None

    @property
    def progress(self) -> "float | None":
        if self.used_tokens is None or self.token_limit is None:
            return None
        if self.token_limit <= 0:
            return None
        return max(0.0, min(self.used_tokens / self.token_limit, 1.0))


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    daily: "UsageWindow"
    weekly: "UsageWindow"
    fetched_at: "datetime"


@dataclass(frozen=True, slots=True)
class LocalUsageEstimate:
    """
    LocalUsageEstimate is the output of one engine run.
    """

    daily_tokens: "int"
    weekly_tokens: "int"
    lifetime_input_tokens: "int"
    lifetime_output_tokens: "int"
    # human-readable provenance, e.g. scanned file counts or "fallback"
    source_description: "str"

    @property
    def lifetime_total_tokens(self) -> "int":
        return self.lifetime_input_tokens + self.lifetime_output_tokens


@dataclass(frozen=True, slots=True)
class RollupTotals:
    daily_tokens: "int"
    weekly_tokens: "int"
    has_today_entry: "bool"
