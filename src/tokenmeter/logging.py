import logging
import sys

import structlog


def setup_logging(level: "str", json_output: "bool" = False) -> "None":
    """
    configures structlog on top of the stdlib logging module. Logs go
    to stderr so a one-shot report on stdout stays clean; json_output
    swaps the console renderer for one JSON object per line.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        stream=sys.stderr,
    )

    processors: "list[structlog.types.Processor]" = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
