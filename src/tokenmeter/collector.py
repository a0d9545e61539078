import asyncio
import time
from datetime import datetime, timezone

import structlog

from tokenmeter.burn_rate import burn_rate
from tokenmeter.clock import LONG_CYCLE, SHORT_CYCLE, window_bounds
from tokenmeter.errors import UsageEstimatorError
from tokenmeter.estimator import UsageEstimator
from tokenmeter.metrics import MetricsUpdater
from tokenmeter.models import LocalUsageEstimate, UsageSnapshot, UsageWindow

logger = structlog.get_logger()


def build_snapshot(
    estimate: "LocalUsageEstimate | None",
    now: "datetime",
    daily_limit: "int | None",
    weekly_limit: "int | None",
    daily_anchor: "datetime | None" = None,
    weekly_anchor: "datetime | None" = None,
) -> "UsageSnapshot":
    """
    wraps an estimate into a snapshot with limits and reset times.
    A None estimate produces windows without usage, so progress
    stays undefined rather than dropping to zero.
    """
    daily_bounds = window_bounds(SHORT_CYCLE, daily_anchor, now)
    weekly_bounds = window_bounds(LONG_CYCLE, weekly_anchor, now)
    return UsageSnapshot(
        daily=UsageWindow(
            used_tokens=estimate.daily_tokens if estimate else None,
            token_limit=daily_limit,
            reset_at=daily_bounds.end,
        ),
        weekly=UsageWindow(
            used_tokens=estimate.weekly_tokens if estimate else None,
            token_limit=weekly_limit,
            reset_at=weekly_bounds.end,
        ),
        fetched_at=now,
    )


class Collector:
    """
    Collector is responsible for the periodic refresh of the usage
    estimate. Each cycle runs the engine in a worker thread, wraps
    the result into a UsageSnapshot and publishes it to the metrics
    store. Cycles never overlap: the next one is only scheduled
    after the previous one finished.

    The collector owns the burn-rate state (the previous lifetime
    total and when it was seen) between refreshes.
    """

    def __init__(
        self,
        estimator: "UsageEstimator",
        metrics_updater: "MetricsUpdater",
        refresh_interval_seconds: "int" = 300,
        daily_limit: "int | None" = None,
        weekly_limit: "int | None" = None,
        daily_anchor: "datetime | None" = None,
        weekly_anchor: "datetime | None" = None,
    ) -> "None":
        self._estimator = estimator
        self._metrics = metrics_updater
        self._interval = refresh_interval_seconds
        self._daily_limit = daily_limit
        self._weekly_limit = weekly_limit
        self._daily_anchor = daily_anchor
        self._weekly_anchor = weekly_anchor
        self._stop_event: "asyncio.Event" = asyncio.Event()

        self._prev_lifetime_total: "int | None" = None
        self._prev_lifetime_at: "datetime | None" = None
        self.snapshot: "UsageSnapshot | None" = None
        self.burn_rate: "float | None" = None

    def stop(self) -> "None":
        """
        signals the collector loop to stop after the current cycle.
        """
        self._stop_event.set()

    async def run(self) -> "None":
        """
        runs the main refresh loop. Runs until stop() is called.
        """
        while not self._stop_event.is_set():
            logger.info("refresh_cycle_start")
            await self.refresh()
            logger.info("refresh_cycle_end")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    async def refresh(self, now: "datetime | None" = None) -> "UsageSnapshot":
        """
        performs one refresh and returns the published snapshot. A
        failed refresh publishes a snapshot without usage data.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        cycle_start = time.monotonic()

        estimate: "LocalUsageEstimate | None" = None
        try:
            # the scan is blocking file I/O, keep it off the event loop
            estimate = await asyncio.to_thread(self._estimator.estimate, now)
        except UsageEstimatorError as err:
            logger.warning("refresh_failed", reason=err.reason, error=str(err))
            self._metrics.inc_refresh_error(err.reason)
        except Exception:
            logger.exception("refresh_error")
            self._metrics.inc_refresh_error("unexpected")

        snapshot = build_snapshot(
            estimate,
            now,
            self._daily_limit,
            self._weekly_limit,
            self._daily_anchor,
            self._weekly_anchor,
        )
        self.snapshot = snapshot
        self._metrics.update_snapshot(snapshot)

        if estimate is not None:
            self.burn_rate = self._update_burn_rate(estimate, now)
            self._metrics.update_lifetime(estimate)
            self._metrics.set_burn_rate(self.burn_rate)
            self._metrics.set_last_refresh_success(time.time())
            logger.info(
                "usage_refreshed",
                daily=estimate.daily_tokens,
                weekly=estimate.weekly_tokens,
                daily_progress=snapshot.daily.progress,
                weekly_progress=snapshot.weekly.progress,
                source=estimate.source_description,
            )
        else:
            self.burn_rate = None
            self._metrics.set_burn_rate(None)

        self._metrics.observe_refresh_duration(time.monotonic() - cycle_start)
        return snapshot

    def _update_burn_rate(
        self,
        estimate: "LocalUsageEstimate",
        now: "datetime",
    ) -> "float | None":
        current = estimate.lifetime_total_tokens
        rate = burn_rate(
            self._prev_lifetime_total,
            self._prev_lifetime_at,
            current,
            now,
        )
        self._prev_lifetime_total = current
        self._prev_lifetime_at = now
        return rate
