import json
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import structlog

from tokenmeter.errors import InvalidStatsCache, MissingStatsCache
from tokenmeter.models import RollupTotals

logger = structlog.get_logger()

# the rollup's weekly figure covers today and the six days before it
ROLLUP_WEEK_DAYS = 7


@dataclass(frozen=True, slots=True)
class LifetimeTotals:
    input_tokens: "int"
    output_tokens: "int"
    last_computed_date: "str | None"


def load_stats_cache(path: "Path") -> "dict[str, Any]":
    """
    reads and decodes the rollup document. Raises MissingStatsCache
    when the file does not exist and InvalidStatsCache when it can't
    be read or isn't a JSON object.
    """
    if not path.is_file():
        raise MissingStatsCache(str(path))

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise InvalidStatsCache(str(path), str(err)) from err

    try:
        document = json.loads(raw)
    except ValueError as err:
        raise InvalidStatsCache(str(path), "invalid JSON") from err

    if not isinstance(document, dict):
        raise InvalidStatsCache(str(path), "top level is not an object")

    return document


def rollup_totals(document: "dict[str, Any]", today: "date") -> "RollupTotals":
    """
    sums the calendar-day entries: today's tokens for the daily
    figure, the trailing seven days (inclusive) for the weekly one.
    Entries with an unparseable date are ignored.
    """
    entries = document.get("dailyModelTokens") or []
    if not isinstance(entries, list):
        raise ValueError("dailyModelTokens is not a list")

    daily = 0
    weekly = 0
    has_today = False

    for entry in entries:
        if not isinstance(entry, dict):
            continue
        day = _parse_day(entry.get("date"))
        if day is None:
            continue

        tokens = _sum_tokens(entry.get("tokensByModel"))

        if day == today:
            daily += tokens
            has_today = True

        if 0 <= (today - day).days < ROLLUP_WEEK_DAYS:
            weekly += tokens

    return RollupTotals(
        daily_tokens=daily,
        weekly_tokens=weekly,
        has_today_entry=has_today,
    )


def lifetime_totals(document: "dict[str, Any]") -> "LifetimeTotals":
    """
    sums per-model lifetime input/output tokens from modelUsage.
    """
    input_tokens = 0
    output_tokens = 0

    model_usage = document.get("modelUsage") or {}
    if isinstance(model_usage, dict):
        for usage in model_usage.values():
            if not isinstance(usage, dict):
                continue
            input_tokens += _as_int(usage.get("inputTokens"))
            output_tokens += _as_int(usage.get("outputTokens"))

    last_computed = document.get("lastComputedDate")
    return LifetimeTotals(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        last_computed_date=last_computed if isinstance(last_computed, str) else None,
    )


def read_rollup(
    path: "Path",
    now: "datetime",
    document: "dict[str, Any] | None" = None,
) -> "RollupTotals":
    """
    reads the rollup at path and computes calendar-day totals
    relative to now's local date. An already loaded document skips
    the read; path then only labels errors.
    """
    if document is None:
        document = load_stats_cache(path)
    try:
        totals = rollup_totals(document, now.astimezone().date())
    except ValueError as err:
        raise InvalidStatsCache(str(path), str(err)) from err

    logger.debug(
        "rollup_read",
        path=str(path),
        daily=totals.daily_tokens,
        weekly=totals.weekly_tokens,
        has_today=totals.has_today_entry,
    )
    return totals


def read_lifetime(
    path: "Path",
    document: "dict[str, Any] | None" = None,
) -> "LifetimeTotals":
    if document is None:
        document = load_stats_cache(path)
    return lifetime_totals(document)


def _parse_day(value: "Any") -> "date | None":
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _sum_tokens(by_model: "Any") -> "int":
    if not isinstance(by_model, dict):
        return 0
    return sum(_as_int(v) for v in by_model.values())


def _as_int(value: "Any") -> "int":
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return 0
