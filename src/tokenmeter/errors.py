class UsageEstimatorError(Exception):
    """
    base class for the failures the engine surfaces to callers.
    Both only happen on the fallback path.
    """

    reason: "str" = "unknown"


class MissingStatsCache(UsageEstimatorError):
    reason = "missing_stats_cache"

    def __init__(self, path: "str") -> "None":
        super().__init__(
            f"No local usage data found: could not find {path}. "
            "Run Claude Code at least once and try again."
        )
        self.path = path


class InvalidStatsCache(UsageEstimatorError):
    reason = "invalid_stats_cache"

    def __init__(self, path: "str", detail: "str" = "") -> "None":
        message = f"Fallback data unreadable: failed to parse {path}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.path = path


class ConfigurationError(ValueError):
    """
    raised at the configuration boundary for invalid anchors,
    weights or limits.
    """
