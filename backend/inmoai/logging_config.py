"""structlog configuration module."""

import logging
import re
import sys

import structlog

# Libraries that log full request URLs (Telegram puts the bot token in the path)
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "hpack")

_SECRET_PATTERNS = (
    re.compile(r"bot\d+:[A-Za-z0-9_-]+"),
    re.compile(r"sk-[A-Za-z0-9_-]{8,}"),
)


def redact_secrets(text: str) -> str:
    """Mask Telegram bot tokens and OpenAI keys inside a log string."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub("***", text)
    return text


def _redact_processor(logger, method_name: str, event_dict: dict) -> dict:
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_secrets(value)
    return event_dict


def setup_logging(debug: bool = False) -> None:
    """
    Configure structlog and stdlib logging for the analysis service.

    Debug runs get the colored console renderer. Anything else emits one JSON
    object per line. String values are scrubbed of credentials before rendering.

    Args:
        debug: If True, use ConsoleRenderer and let HTTP client logs through.
    """
    level = logging.DEBUG if debug else logging.INFO

    processors: list = [
        structlog.contextvars.merge_contextvars,  # request_id, path (middleware)
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _redact_processor,
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)
