"""Structured logging setup.

- Development: human-readable console renderer
- Production/CI: JSON renderer for machine parsing
"""

import logging
import sys

import structlog


def configure_logging(*, use_json: bool = False, level: str = "INFO") -> None:
    """Configure structlog once for the whole process.

    Args:
        use_json (bool): JSON output when True, console output when False.
        level (str): Minimum level name, e.g. "INFO".
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )
