"""
Structured logging configuration using structlog.

Production emits one JSON object per line; development uses the console
renderer. Request handlers bind a request_id so every line logged while
serving a request carries it. Platform tokens travel through adapter calls
as plain strings, so any event key that looks like a credential is masked
before rendering.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from zenfeed.config.settings import Settings, get_settings

# Transport libraries log full request URLs, which include API keys
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")

SECRET_KEY_MARKERS = ("token", "api_key", "apikey", "secret", "password", "credentials")


def mask_secret(value: object) -> str:
    text = str(value)
    if len(text) <= 8:
        return "***"
    return f"{text[:4]}***"


def redact_credentials(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask values whose key names a credential."""
    for key, value in event_dict.items():
        if value is None or key == "event":
            continue
        if any(marker in key.lower() for marker in SECRET_KEY_MARKERS):
            if isinstance(value, dict):
                event_dict[key] = {k: mask_secret(v) for k, v in value.items()}
            else:
                event_dict[key] = mask_secret(value)
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and route stdlib logging through it.

    Usage:
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Fetched source", source_id="abc", platform="rss")
    """
    settings = settings or get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_credentials,
    ]

    if settings.is_production:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = logging.getLevelName(settings.log_level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("zenfeed").setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Bind key-value pairs to all subsequent log lines in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
