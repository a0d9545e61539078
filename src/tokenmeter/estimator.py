from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from tokenmeter.clock import LONG_CYCLE, SHORT_CYCLE, ensure_aware, window_start
from tokenmeter.dedup import WindowTotals
from tokenmeter.errors import UsageEstimatorError
from tokenmeter.extractor import extract
from tokenmeter.models import LocalUsageEstimate, WindowWeights
from tokenmeter.rollup import load_stats_cache, read_lifetime, read_rollup
from tokenmeter.selector import (
    DEFAULT_MAX_AGE_SECONDS,
    DEFAULT_MAX_COUNT,
    LogCandidate,
    select_candidates,
)
from tokenmeter.weighting import (
    DEFAULT_DAILY_WEIGHTS,
    DEFAULT_WEEKLY_WEIGHTS,
    weighted_total,
)

logger = structlog.get_logger()

DEFAULT_PROJECTS_DIR = Path.home() / ".claude" / "projects"
DEFAULT_STATS_CACHE = Path.home() / ".claude" / "stats-cache.json"


@dataclass
class ScanResult:
    """
    ScanResult holds the per-window totals of one pass over the
    primary logs, along with counters for the provenance string.
    """

    daily: "WindowTotals" = field(default_factory=WindowTotals)
    weekly: "WindowTotals" = field(default_factory=WindowTotals)
    candidate_files: "int" = 0
    scanned_files: "int" = 0
    scanned_lines: "int" = 0
    used_records: "bool" = False


class UsageEstimator:
    """
    UsageEstimator turns the local event logs into rolling 5h and
    7d token totals. Each call to estimate() is a pure function of
    the files on disk, the arguments and the instance settings.

    The log scan never fails; an empty result falls back to the
    calendar-day rollup, and only that path can raise.
    """

    def __init__(
        self,
        projects_dir: "Path" = DEFAULT_PROJECTS_DIR,
        stats_cache_path: "Path" = DEFAULT_STATS_CACHE,
        daily_anchor: "datetime | None" = None,
        weekly_anchor: "datetime | None" = None,
        daily_weights: "WindowWeights" = DEFAULT_DAILY_WEIGHTS,
        weekly_weights: "WindowWeights" = DEFAULT_WEEKLY_WEIGHTS,
        max_file_age_seconds: "int" = DEFAULT_MAX_AGE_SECONDS,
        max_files: "int" = DEFAULT_MAX_COUNT,
    ) -> "None":
        self._projects_dir = projects_dir
        self._stats_cache_path = stats_cache_path
        self._daily_anchor = daily_anchor
        self._weekly_anchor = weekly_anchor
        self._daily_weights = daily_weights
        self._weekly_weights = weekly_weights
        self._max_file_age_seconds = max_file_age_seconds
        self._max_files = max_files

    def estimate(
        self,
        now: "datetime | None" = None,
        daily_window_start: "datetime | None" = None,
        weekly_window_start: "datetime | None" = None,
        daily_weights: "WindowWeights | None" = None,
        weekly_weights: "WindowWeights | None" = None,
    ) -> "LocalUsageEstimate":
        """
        computes the daily (5h) and weekly (7d) token totals as of now.

        Raises MissingStatsCache or InvalidStatsCache only when the log
        scan found nothing and the rollup can't stand in for it.
        """
        # naive inputs are local time
        now = ensure_aware(now) if now is not None else datetime.now(timezone.utc)

        if daily_window_start is None:
            daily_window_start = window_start(SHORT_CYCLE, self._daily_anchor, now)
        if weekly_window_start is None:
            weekly_window_start = window_start(LONG_CYCLE, self._weekly_anchor, now)
        daily_window_start = ensure_aware(daily_window_start)
        weekly_window_start = ensure_aware(weekly_window_start)

        scan = self.scan(
            now,
            daily_window_start,
            weekly_window_start,
            daily_weights or self._daily_weights,
            weekly_weights or self._weekly_weights,
        )
        daily = scan.daily.total()
        weekly = scan.weekly.total()
        source = self._scan_description(scan)
        fallback = daily == 0 and weekly == 0

        stats: "dict[str, Any] | None"
        try:
            stats = load_stats_cache(self._stats_cache_path)
        except UsageEstimatorError as err:
            # only fatal when the rollup is the last resort
            if fallback:
                logger.warning("local_usage_unavailable", error=str(err))
                raise
            logger.debug("stats_cache_unavailable", error=str(err))
            stats = None

        if fallback and stats is not None:
            rollup = read_rollup(self._stats_cache_path, now, document=stats)
            daily = rollup.daily_tokens
            weekly = rollup.weekly_tokens
            source = f"{self._stats_cache_path} (fallback)"
            logger.info(
                "rollup_fallback_used",
                daily=daily,
                weekly=weekly,
                has_today=rollup.has_today_entry,
            )

        lifetime_in = 0
        lifetime_out = 0
        if stats is not None:
            lifetime = read_lifetime(self._stats_cache_path, document=stats)
            lifetime_in = lifetime.input_tokens
            lifetime_out = lifetime.output_tokens
            computed = lifetime.last_computed_date or "unknown"
            source = f"{source} (stats-cache.lastComputedDate={computed})"
        else:
            source = f"{source} (stats-cache unavailable)"

        logger.debug(
            "usage_estimated",
            daily=daily,
            weekly=weekly,
            source=source,
        )
        return LocalUsageEstimate(
            daily_tokens=daily,
            weekly_tokens=weekly,
            lifetime_input_tokens=lifetime_in,
            lifetime_output_tokens=lifetime_out,
            source_description=source,
        )

    def scan(
        self,
        now: "datetime",
        daily_window_start: "datetime",
        weekly_window_start: "datetime",
        daily_weights: "WindowWeights",
        weekly_weights: "WindowWeights",
    ) -> "ScanResult":
        """
        scans the most recent log files and accumulates per-window
        max-by-identifier totals. Every window ends at now.
        """
        result = ScanResult()
        selection = select_candidates(
            self._projects_dir,
            now,
            max_age_seconds=self._max_file_age_seconds,
            max_count=self._max_files,
        )
        result.candidate_files = selection.discovered

        earliest = min(daily_window_start, weekly_window_start)

        for candidate in selection:
            lines = self._read_lines(candidate)
            if lines is None:
                continue
            result.scanned_files += 1

            for raw_line in lines:
                if not raw_line.strip():
                    continue
                result.scanned_lines += 1

                record = extract(raw_line)
                if record is None:
                    continue

                ts = record.timestamp
                if ts < earliest or ts >= now:
                    continue
                result.used_records = True

                if daily_window_start <= ts:
                    result.daily.observe(
                        record.identifier, weighted_total(record, daily_weights)
                    )
                if weekly_window_start <= ts:
                    result.weekly.observe(
                        record.identifier, weighted_total(record, weekly_weights)
                    )

        logger.debug(
            "log_scan_done",
            candidates=result.candidate_files,
            scanned=result.scanned_files,
            lines=result.scanned_lines,
            daily_events=len(result.daily),
            weekly_events=len(result.weekly),
        )
        return result

    def _read_lines(self, candidate: "LogCandidate") -> "list[str] | None":
        try:
            text = candidate.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            logger.debug(
                "log_file_unreadable", path=str(candidate.path), error=str(err)
            )
            return None
        return text.splitlines()

    def _scan_description(self, scan: "ScanResult") -> "str":
        suffix = ", dedupe=max-by-message-id" if scan.used_records else ""
        return (
            f"{self._projects_dir}/**/*.jsonl "
            f"(candidates={scan.candidate_files}, scanned={scan.scanned_files}, "
            f"lines={scan.scanned_lines}{suffix})"
        )
