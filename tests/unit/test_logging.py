"""
Logging Configuration Unit Tests

Level wiring for the pipeline logger and masking of provider credentials.
"""

import logging
from unittest.mock import patch

import pytest

from notecanvas.core.config import settings
from notecanvas.core.logging import (
    GENERATION_LOGGER,
    REDACTED,
    RedactSecretsFilter,
    build_logging_config,
    redact,
    setup_logging,
)


def make_record(msg: str, *args) -> logging.LogRecord:
    return logging.LogRecord("notecanvas.test", logging.WARNING, __file__, 1, msg, args, None)


class TestBuildConfig:
    def test_generation_level_defaults_to_log_level(self):
        config = build_logging_config("info")

        assert config["loggers"]["notecanvas"]["level"] == "INFO"
        assert config["loggers"][GENERATION_LOGGER]["level"] == "INFO"
        assert config["root"]["level"] == "INFO"

    def test_generation_level_override(self):
        config = build_logging_config("warning", "debug")

        assert config["loggers"]["notecanvas"]["level"] == "WARNING"
        assert config["loggers"][GENERATION_LOGGER]["level"] == "DEBUG"

    @pytest.mark.parametrize("name", ["httpx", "httpcore", "openai", "sqlalchemy.engine"])
    def test_client_loggers_quieted(self, name: str):
        assert build_logging_config("debug")["loggers"][name]["level"] == "WARNING"

    def test_console_handler_redacts(self):
        config = build_logging_config("info")
        assert config["handlers"]["console"]["filters"] == ["redact_secrets"]


class TestRedaction:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Authorization: Bearer abc.def-123", f"Authorization: Bearer {REDACTED}"),
            ("invalid key sk-or-v1-0123abcd", f"invalid key {REDACTED}"),
            ("402 insufficient credits", "402 insufficient credits"),
        ],
    )
    def test_redact(self, text: str, expected: str):
        assert redact(text) == expected

    def test_filter_masks_formatted_arguments(self):
        record = make_record("Provider rejected %s (%d)", "sk-or-v1-secret", 401)

        assert RedactSecretsFilter().filter(record) is True
        assert record.getMessage() == f"Provider rejected {REDACTED} (401)"

    def test_filter_leaves_clean_records_untouched(self):
        record = make_record("Stored object %s", "abc")

        RedactSecretsFilter().filter(record)

        assert record.msg == "Stored object %s"
        assert record.args == ("abc",)


def test_setup_logging_applies_generation_level():
    try:
        with patch.object(settings, "LOG_LEVEL", "INFO"), patch.object(
            settings, "GENERATION_LOG_LEVEL", "DEBUG"
        ):
            setup_logging()

        assert logging.getLogger(GENERATION_LOGGER).getEffectiveLevel() == logging.DEBUG
        assert logging.getLogger("notecanvas.services.storage").getEffectiveLevel() == logging.INFO
    finally:
        setup_logging()
