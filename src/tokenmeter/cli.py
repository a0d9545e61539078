import argparse
from pathlib import Path

from tokenmeter.config import Config, parse_anchor, parse_token_limit
from tokenmeter.errors import ConfigurationError


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = argparse.ArgumentParser(
        prog="tokenmeter",
        description="Local LLM token usage estimator and Prometheus exporter",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=":9186",
        help="Address to listen on (default: :9186)",
    )
    parser.add_argument(
        "--refresh.interval",
        dest="refresh_interval",
        type=int,
        default=300,
        help="Refresh interval in seconds (default: 300)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log.format",
        dest="log_format",
        default="console",
        choices=["console", "json"],
        help="Log output format (default: console)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print a single usage report and exit",
    )
    parser.add_argument(
        "--projects.dir",
        dest="projects_dir",
        type=Path,
        default=None,
        help="Root directory of the JSONL event logs (default: ~/.claude/projects)",
    )
    parser.add_argument(
        "--stats-cache.path",
        dest="stats_cache_path",
        type=Path,
        default=None,
        help="Fallback rollup file (default: ~/.claude/stats-cache.json)",
    )
    parser.add_argument(
        "--daily.limit",
        dest="daily_limit",
        default=None,
        help="Token limit of the 5h window, e.g. 500,000",
    )
    parser.add_argument(
        "--weekly.limit",
        dest="weekly_limit",
        default=None,
        help="Token limit of the 7d window",
    )
    parser.add_argument(
        "--daily.anchor",
        dest="daily_anchor",
        default=None,
        help="ISO-8601 instant the 5h window resets from",
    )
    parser.add_argument(
        "--weekly.anchor",
        dest="weekly_anchor",
        default=None,
        help="ISO-8601 instant the 7d window resets from",
    )

    args = parser.parse_args(argv)
    if args.refresh_interval <= 0:
        parser.error("--refresh.interval must be positive")

    try:
        config = Config.from_env()
        if args.daily_limit is not None:
            config.daily_token_limit = parse_token_limit(args.daily_limit)
        if args.weekly_limit is not None:
            config.weekly_token_limit = parse_token_limit(args.weekly_limit)
        if args.daily_anchor is not None:
            config.daily_anchor = parse_anchor(args.daily_anchor)
        if args.weekly_anchor is not None:
            config.weekly_anchor = parse_anchor(args.weekly_anchor)
    except ConfigurationError as err:
        parser.error(str(err))

    config.listen_address = args.listen_address
    config.refresh_interval = args.refresh_interval
    config.log_level = args.log_level
    config.log_format = args.log_format
    config.once = args.once
    if args.projects_dir is not None:
        config.projects_dir = args.projects_dir.expanduser()
    if args.stats_cache_path is not None:
        config.stats_cache_path = args.stats_cache_path.expanduser()
    return config
