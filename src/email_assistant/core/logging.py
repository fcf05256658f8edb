"""structlog setup for the email assistant.

Log output goes to stderr so command output on stdout stays clean. A scan
binds its run id with set_correlation_id(); every event logged until it is
cleared carries `run_id`.

Usage:
    from email_assistant.core.logging import configure_logging, get_logger

    configure_logging("DEBUG")
    logger = get_logger(__name__)
    logger.info("corrections_detected", corrections=3, deleted=1)
"""

import logging
import sys

import structlog

RUN_ID_KEY = "run_id"

# Chatty dependencies kept at WARNING unless debugging
NOISY_LOGGERS = ("anthropic", "httpx", "httpcore", "msal", "urllib3", "aiosqlite")


def set_correlation_id(correlation_id: str | None) -> None:
    """Bind (or with None, clear) the run id on the current context."""
    if correlation_id is None:
        structlog.contextvars.unbind_contextvars(RUN_ID_KEY)
    else:
        structlog.contextvars.bind_contextvars(**{RUN_ID_KEY: correlation_id})


def get_correlation_id() -> str | None:
    return structlog.contextvars.get_contextvars().get(RUN_ID_KEY)


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Route structlog through stdlib logging on stderr.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_output: JSON lines instead of the console renderer
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
