import asyncio
import signal
import sys
from datetime import datetime, timezone

import structlog
from prometheus_client import start_http_server

from tokenmeter.cli import parse_args
from tokenmeter.collector import Collector, build_snapshot
from tokenmeter.config import Config
from tokenmeter.errors import UsageEstimatorError
from tokenmeter.estimator import UsageEstimator
from tokenmeter.logging import setup_logging
from tokenmeter.metrics import MetricsUpdater
from tokenmeter.models import UsageWindow

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '0.0.0.0:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def build_estimator(config: "Config") -> "UsageEstimator":
    return UsageEstimator(
        projects_dir=config.projects_dir,
        stats_cache_path=config.stats_cache_path,
        daily_anchor=config.daily_anchor,
        weekly_anchor=config.weekly_anchor,
        daily_weights=config.daily_weights,
        weekly_weights=config.weekly_weights,
        max_file_age_seconds=config.max_file_age_seconds,
        max_files=config.max_files,
    )


def _format_window(name: "str", window: "UsageWindow") -> "str":
    used = "-" if window.used_tokens is None else f"{window.used_tokens:,}"
    limit = "-" if window.token_limit is None else f"{window.token_limit:,}"
    progress = window.progress
    percent = "-%" if progress is None else f"{round(progress * 100)}%"
    reset = "-"
    if window.reset_at is not None:
        reset = window.reset_at.astimezone().isoformat(timespec="minutes")
    return f"{name}: {used} / {limit} tokens ({percent}), resets {reset}"


def report_once(config: "Config") -> "int":
    """
    runs one estimate, prints a short report and returns the exit code.
    """
    estimator = build_estimator(config)
    daily_limit, weekly_limit = config.resolved_limits()
    now = datetime.now(timezone.utc)

    try:
        estimate = estimator.estimate(now)
    except UsageEstimatorError as err:
        print(f"Estimated: unavailable ({err})", file=sys.stderr)
        return 1

    snapshot = build_snapshot(
        estimate,
        now,
        daily_limit,
        weekly_limit,
        config.daily_anchor,
        config.weekly_anchor,
    )
    print(_format_window("5h", snapshot.daily))
    print(_format_window("7d", snapshot.weekly))
    print(f"lifetime: {estimate.lifetime_total_tokens:,} tokens")
    print(f"source: {estimate.source_description}")
    return 0


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level, json_output=config.log_format == "json")

    if config.once:
        raise SystemExit(report_once(config))

    daily_limit, weekly_limit = config.resolved_limits()
    logger.info(
        "limits_configured",
        daily=daily_limit,
        weekly=weekly_limit,
        daily_anchor=config.daily_anchor,
        weekly_anchor=config.weekly_anchor,
    )

    metrics_updater = MetricsUpdater()
    host, port = _parse_listen_address(config.listen_address)
    start_http_server(port, addr=host)
    logger.info("metrics_server_started", host=host, port=port)

    collector = Collector(
        build_estimator(config),
        metrics_updater,
        refresh_interval_seconds=config.refresh_interval,
        daily_limit=daily_limit,
        weekly_limit=weekly_limit,
        daily_anchor=config.daily_anchor,
        weekly_anchor=config.weekly_anchor,
    )

    async def _run() -> "None":
        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, signal the collector
        # to stop gracefully
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, collector.stop)

        try:
            await collector.run()
        finally:
            logger.info("shutdown_complete")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
