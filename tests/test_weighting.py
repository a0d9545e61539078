from datetime import datetime, timezone

import pytest

from tokenmeter.errors import ConfigurationError
from tokenmeter.models import UsageRecord, WindowWeights
from tokenmeter.weighting import (
    DEFAULT_DAILY_WEIGHTS,
    DEFAULT_WEEKLY_WEIGHTS,
    weighted_total,
)


def _record(**tokens: "int") -> "UsageRecord":
    return UsageRecord(
        identifier="msg",
        input_tokens=tokens.get("input", 0),
        output_tokens=tokens.get("output", 0),
        cache_creation_tokens=tokens.get("cache_creation", 0),
        cache_read_tokens=tokens.get("cache_read", 0),
        timestamp=datetime(2026, 2, 14, tzinfo=timezone.utc),
    )


class TestWeightedTotal:
    def test_weights_cache_categories(self) -> "None":
        record = _record(input=100, output=50, cache_creation=1000, cache_read=2000)
        weights = WindowWeights(cache_creation_weight=0.02, cache_read_weight=0.003)
        assert weighted_total(record, weights) == pytest.approx(176.0)

    def test_zero_weights_count_fresh_tokens_only(self) -> "None":
        record = _record(input=10, output=5, cache_creation=100, cache_read=100)
        weights = WindowWeights(cache_creation_weight=0, cache_read_weight=0)
        assert weighted_total(record, weights) == 15.0

    def test_windows_use_independent_defaults(self) -> "None":
        record = _record(cache_read=10_000)
        assert weighted_total(record, DEFAULT_DAILY_WEIGHTS) == pytest.approx(30.0)
        assert weighted_total(record, DEFAULT_WEEKLY_WEIGHTS) == pytest.approx(212.0)


class TestWindowWeights:
    def test_rejects_negative(self) -> "None":
        with pytest.raises(ConfigurationError):
            WindowWeights(cache_creation_weight=-0.1, cache_read_weight=0.0)

    def test_rejects_nan(self) -> "None":
        with pytest.raises(ConfigurationError):
            WindowWeights(cache_creation_weight=0.0, cache_read_weight=float("nan"))

    def test_rejects_non_number(self) -> "None":
        with pytest.raises(ConfigurationError):
            WindowWeights(cache_creation_weight="0.1", cache_read_weight=0.0)
