"""
Structured logging for mentormatch-auth.

Provides:
- configure_logging(): one-time structlog setup (console for development, JSON for production)
- get_logger(): module logger factory
- redact_secrets(): processor that masks OTP codes, passwords and tokens

Events are snake_case names with key/value context, e.g.::

    log = get_logger(__name__)
    log.info("otp_issued", identity="a@x.com", purpose="email-verification")
"""

import logging
import sys

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

# Keys whose values must never reach shared logs
REDACTED_FIELDS = frozenset(
    {
        "code",
        "otp",
        "otp_code",
        "password",
        "new_password",
        "password_hash",
        "token",
        "access_token",
        "secret",
        "secret_key",
        "authorization",
    }
)

REDACTED = "[REDACTED]"


def redact_secrets(
    _logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask values of sensitive keys in the event dict."""
    for key in list(event_dict):
        if key.lower() in REDACTED_FIELDS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        fmt: "console" for human-readable output, "json" for production
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=log_level, stream=sys.stdout, format="%(message)s")
    logging.getLogger().setLevel(log_level)

    # Driver chatter
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> BoundLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        structlog bound logger
    """
    return structlog.get_logger(name)
