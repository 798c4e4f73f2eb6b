"""Structured logging for the registerer, built on structlog.

Console output is the default for a watched terminal; JSON lines suit runs
left unattended under a process supervisor. Modules log through get_logger().
The cycle separator is the one thing printed directly, since it only exists
to make retry cycles easy to tell apart by eye.
"""

import logging
import sys
from typing import TextIO

import structlog

SEPARATOR = "-" * 62

# Event keys whose values are masked before rendering.
_SECRET_KEYS: frozenset[str] = frozenset(
    {"password", "passwd", "minerva_pass", "api_key", "sendgrid_api_key", "token"}
)

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("urllib3", "asyncio")


def redact_secrets(
    logger: object, method_name: str, event_dict: structlog.typing.EventDict
) -> structlog.typing.EventDict:
    """Mask values of secret-looking keys so credentials never reach the log."""
    for key in event_dict:
        if key.lower() in _SECRET_KEYS:
            event_dict[key] = "********"
    return event_dict


def _processors(json_output: bool, stream: TextIO) -> list[structlog.typing.Processor]:
    shared: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
    ]
    if json_output:
        return [
            *shared,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [*shared, structlog.dev.ConsoleRenderer(colors=stream.isatty())]


def setup_logging(
    json_output: bool = False,
    log_level: str = "INFO",
    *,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the stdlib root logger for one run.

    Args:
        json_output: Render JSON lines instead of the console format.
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        stream: Destination of every log line, stdout by default.
    """
    stream = stream or sys.stdout
    numeric_level = logging.getLevelName(log_level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=_processors(json_output, stream),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # Playwright and requests log through stdlib; send them to the same stream.
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger for module ``name``."""
    return structlog.get_logger(name)


def print_separator() -> None:
    """Print the visible line that starts every retry cycle."""
    print(f"\n{SEPARATOR}", flush=True)
