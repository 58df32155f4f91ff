"""
Logging Configuration

Console logging on stdout for container log drivers, with two additions for
the generation service:

- The pipeline logger has its own level (GENERATION_LOG_LEVEL) so stage
  transitions can be traced at DEBUG without raising every other logger.
- Provider credentials never reach the output. Bearer tokens and OpenRouter
  keys echoed back in provider error bodies are masked on the handler.
"""

from __future__ import annotations

import logging
import re
import sys
from logging.config import dictConfig
from typing import Any

from notecanvas.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

GENERATION_LOGGER = "notecanvas.services.generation"

# Client libraries that log one line per provider request
QUIET_LOGGERS = ("httpx", "httpcore", "openai")

REDACTED = "[REDACTED]"
_BEARER_TOKEN = re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-]+")
_OPENROUTER_KEY = re.compile(r"sk-or-[A-Za-z0-9_\-]+")


class RedactSecretsFilter(logging.Filter):
    """Mask provider credentials in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def redact(text: str) -> str:
    text = _BEARER_TOKEN.sub(rf"\g<1>{REDACTED}", text)
    return _OPENROUTER_KEY.sub(REDACTED, text)


def build_logging_config(log_level: str, generation_log_level: str | None = None) -> dict[str, Any]:
    """
    dictConfig mapping for the given levels.

    Args:
        log_level: Level of the root and ``notecanvas`` loggers.
        generation_log_level: Level of the pipeline logger, defaults to log_level.
    """
    log_level = log_level.upper()
    generation_level = (generation_log_level or log_level).upper()

    loggers: dict[str, Any] = {
        "notecanvas": {
            "level": log_level,
            "handlers": ["console"],
            "propagate": False,  # Prevent duplicate logs to root
        },
        GENERATION_LOGGER: {"level": generation_level},
        "uvicorn": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.access": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "sqlalchemy.engine": {
            "level": "WARNING",  # Suppress verbose SQL logs unless debugging
            "handlers": ["console"],
            "propagate": False,
        },
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING", "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,  # Preserve third-party loggers
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "filters": {
            "redact_secrets": {"()": RedactSecretsFilter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
                "filters": ["redact_secrets"],
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": loggers,
    }


def setup_logging() -> None:
    """
    Apply the logging configuration from settings.

    Levels come from LOG_LEVEL and GENERATION_LOG_LEVEL. Call once at
    application startup.
    """
    dictConfig(build_logging_config(settings.LOG_LEVEL, settings.GENERATION_LOG_LEVEL))
