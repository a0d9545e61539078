from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from tokenmeter.models import LocalUsageEstimate, UsageSnapshot, UsageWindow

# unknown values are exported as NaN so a missing progress never
# reads as 0%
_NAN = float("nan")


def create_window_metrics(
    registry: "CollectorRegistry" = REGISTRY,
) -> "dict[str, Gauge]":
    """
    creates the per-window gauge families, labeled by window
    (daily = 5h, weekly = 7d).
     - used_tokens: effective tokens used in the window.
     - limit_tokens: configured token limit of the window.
     - progress_ratio: used / limit clamped to [0, 1], NaN if unknown.
     - reset_timestamp_seconds: unix time of the next reset.
    """
    return {
        "used_tokens": Gauge(
            "tokenmeter_window_used_tokens",
            "Effective tokens used in the current window",
            ["window"],
            registry=registry,
        ),
        "limit_tokens": Gauge(
            "tokenmeter_window_limit_tokens",
            "Configured token limit of the window",
            ["window"],
            registry=registry,
        ),
        "progress_ratio": Gauge(
            "tokenmeter_window_progress_ratio",
            "Fraction of the window limit used, NaN when unknown",
            ["window"],
            registry=registry,
        ),
        "reset_timestamp_seconds": Gauge(
            "tokenmeter_window_reset_timestamp_seconds",
            "Unix timestamp of the next window reset",
            ["window"],
            registry=registry,
        ),
    }


class MetricsUpdater:
    """
    applies UsageSnapshot/LocalUsageEstimate data to Prometheus gauges.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._window_metrics: "dict[str, Gauge]" = create_window_metrics(registry)
        self._lifetime_tokens: "Gauge" = Gauge(
            "tokenmeter_lifetime_tokens",
            "Lifetime tokens from the local rollup by direction",
            ["direction"],
            registry=registry,
        )
        self._burn_rate: "Gauge" = Gauge(
            "tokenmeter_burn_rate_tokens_per_minute",
            "Lifetime token growth between the last two refreshes, NaN when unknown",
            registry=registry,
        )
        self._refresh_duration: "Histogram" = Histogram(
            "tokenmeter_refresh_duration_seconds",
            "Duration of usage refresh cycles",
            registry=registry,
        )
        self._refresh_errors: "Counter" = Counter(
            "tokenmeter_refresh_errors_total",
            "Total number of failed refreshes by reason",
            ["reason"],
            registry=registry,
        )
        self._last_refresh_success: "Gauge" = Gauge(
            "tokenmeter_last_refresh_success_timestamp_seconds",
            "Unix timestamp of the last successful refresh",
            registry=registry,
        )

    def update_snapshot(self, snapshot: "UsageSnapshot") -> "None":
        """
        updates the window gauges from the snapshot's two windows.
        """
        self._set_window("daily", snapshot.daily)
        self._set_window("weekly", snapshot.weekly)

    def _set_window(self, window: "str", usage: "UsageWindow") -> "None":
        metrics = self._window_metrics

        used = usage.used_tokens
        metrics["used_tokens"].labels(window=window).set(
            _NAN if used is None else used
        )

        limit = usage.token_limit
        metrics["limit_tokens"].labels(window=window).set(
            _NAN if limit is None else limit
        )

        progress = usage.progress
        metrics["progress_ratio"].labels(window=window).set(
            _NAN if progress is None else progress
        )

        reset_at = usage.reset_at
        metrics["reset_timestamp_seconds"].labels(window=window).set(
            _NAN if reset_at is None else reset_at.timestamp()
        )

    def update_lifetime(self, estimate: "LocalUsageEstimate") -> "None":
        self._lifetime_tokens.labels(direction="input").set(
            estimate.lifetime_input_tokens
        )
        self._lifetime_tokens.labels(direction="output").set(
            estimate.lifetime_output_tokens
        )

    def set_burn_rate(self, tokens_per_minute: "float | None") -> "None":
        self._burn_rate.set(_NAN if tokens_per_minute is None else tokens_per_minute)

    def observe_refresh_duration(self, duration_seconds: "float") -> "None":
        self._refresh_duration.observe(duration_seconds)

    def inc_refresh_error(self, reason: "str") -> "None":
        self._refresh_errors.labels(reason=reason).inc()

    def set_last_refresh_success(self, timestamp: "float") -> "None":
        self._last_refresh_success.set(timestamp)
