from datetime import datetime, timedelta

from tokenmeter.models import WindowBounds

# short cycle: the 5 hour session budget
SHORT_CYCLE = timedelta(hours=5)
# long cycle: the 7 day weekly budget
LONG_CYCLE = timedelta(days=7)


def ensure_aware(value: "datetime") -> "datetime":
    """
    attaches the local timezone to a naive datetime. Aware values
    are returned unchanged.
    """
    if value.tzinfo is None:
        return value.astimezone()
    return value


def window_start(
    cycle: "timedelta",
    anchor: "datetime | None",
    now: "datetime",
) -> "datetime":
    """
    returns the start of the window containing now. Without an
    anchor the window simply trails now by one cycle; with an
    anchor it is the last anchor + N * cycle boundary <= now.
    """
    now = ensure_aware(now)
    if anchor is None:
        return now - cycle

    anchor = ensure_aware(anchor)
    # timedelta // timedelta floors, so this also works for now < anchor
    cycles_passed = (now - anchor) // cycle
    return anchor + cycles_passed * cycle


def window_end(
    cycle: "timedelta",
    anchor: "datetime | None",
    now: "datetime",
) -> "datetime":
    """
    returns the next reset after now.
    """
    if anchor is None:
        return ensure_aware(now) + cycle
    return window_start(cycle, anchor, now) + cycle


def window_bounds(
    cycle: "timedelta",
    anchor: "datetime | None",
    now: "datetime",
) -> "WindowBounds":
    return WindowBounds(
        start=window_start(cycle, anchor, now),
        end=window_end(cycle, anchor, now),
    )
