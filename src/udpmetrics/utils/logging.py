"""structlog setup shared by the library and the CLI.

Library modules bind ``logger = get_logger("<area>")`` at import; nothing is
emitted below the level passed to ``configure_logging``.
"""

import logging
import sys

import structlog


def configure_logging(level=logging.INFO, stream=None):
    stream = stream or sys.stdout
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(stream),
        # Module-level loggers outlive reconfiguration (CLI, tests)
        cache_logger_on_first_use=False,
    )
    # Route stdlib loggers (asyncio included) to the same stream
    logging.basicConfig(format="%(message)s", stream=stream, level=level)


def get_logger(name: str, **initial_values):
    return structlog.get_logger(name, **initial_values)
