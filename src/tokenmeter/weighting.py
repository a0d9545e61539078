from tokenmeter.models import UsageRecord, WindowWeights

# calibrated against observed local logs. The 5h window is more
# sensitive to cache-read bursts than the 7d window, so the two
# windows carry independent read weights.
DEFAULT_DAILY_WEIGHTS = WindowWeights(
    cache_creation_weight=0.02,
    cache_read_weight=0.0030,
)
DEFAULT_WEEKLY_WEIGHTS = WindowWeights(
    cache_creation_weight=0.02,
    cache_read_weight=0.0212,
)


def weighted_total(record: "UsageRecord", weights: "WindowWeights") -> "float":
    """
    collapses a record's token categories into one effective
    token count: fresh input and output count in full, cache
    creation and cache reads are discounted by the window weights.
    """
    effective = (
        record.input_tokens
        + record.output_tokens
        + record.cache_creation_tokens * weights.cache_creation_weight
        + record.cache_read_tokens * weights.cache_read_weight
    )
    return max(0.0, effective)
