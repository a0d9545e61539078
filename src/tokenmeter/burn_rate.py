from datetime import datetime

# floor on the sample spacing so two refreshes in the same instant
# don't divide by zero
_MIN_ELAPSED_MINUTES = 0.0001


def burn_rate(
    prev_total: "int | None",
    prev_at: "datetime | None",
    curr_total: "int",
    curr_at: "datetime",
) -> "float | None":
    """
    returns tokens per minute between two lifetime totals, or None
    when there is no previous sample, time didn't move forward, or
    the total went down (e.g. the rollup was reset).
    """
    if prev_total is None or prev_at is None:
        return None

    elapsed = (curr_at - prev_at).total_seconds()
    if elapsed <= 0:
        return None

    delta = curr_total - prev_total
    if delta < 0:
        return None

    minutes = max(elapsed / 60.0, _MIN_ELAPSED_MINUTES)
    return delta / minutes
