"""Structured logging for the storefront.

Log lines are JSON in deployment and colored key/value pairs locally
(LOG_FORMAT=console). Download tokens are bearer credentials, so any
``token`` field is cut down to a preview before rendering, whichever
module logged it.
"""

import logging
import os
import sys
from typing import Any, Mapping, Optional

import structlog
from structlog.typing import EventDict, Processor

from clip_storefront.utils.token_generator import token_preview

APP_NAME = "clip-storefront"

# Fields holding download credentials.
CREDENTIAL_FIELDS = ("token", "download_token")

# Client libraries that log every request at INFO.
NOISY_LOGGERS = ("sqlalchemy.engine", "stripe", "httpx", "httpcore")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = APP_NAME
    return event_dict


def shorten_tokens(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace credential fields with their preview."""
    for field in CREDENTIAL_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = token_preview(value)
    return event_dict


def drop_debug_in_production(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop DEBUG events unless LOG_LEVEL=DEBUG."""
    if method_name == "debug" and not is_debug_mode():
        raise structlog.DropEvent
    return event_dict


def is_debug_mode() -> bool:
    return os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG"


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    include_timestamp: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines if True, colored console output otherwise
        include_timestamp: Include ISO8601 timestamps in logs
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        shorten_tokens,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    if numeric_level > logging.DEBUG:
        processors.append(drop_debug_in_production)

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_env(environ: Optional[Mapping[str, str]] = None) -> None:
    """Configure logging from LOG_LEVEL and LOG_FORMAT (json | console)."""
    environ = os.environ if environ is None else environ
    configure_logging(
        log_level=environ.get("LOG_LEVEL", "INFO"),
        json_format=environ.get("LOG_FORMAT", "json").lower() == "json",
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind request-scoped fields (request_id, clip_id, token, session_id)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
