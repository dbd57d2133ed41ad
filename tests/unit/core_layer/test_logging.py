"""
Unit Tests for Logging Module

Tests request id context, PII redaction and the stage logging helper.
"""

from unittest.mock import MagicMock

import pytest

from cloudpc.core.config.constants import Stage
from cloudpc.core.logging.logger import (
    add_log_level_name,
    add_request_id,
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    redact_pii,
    set_request_id,
    setup_logging,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation and configuration."""

    def test_get_logger_returns_logger_instance(self):
        """Test that get_logger returns a logger with level methods."""
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")

    def test_setup_logging_accepts_both_formats(self):
        """Test JSON and console renderers configure without error."""
        setup_logging(log_level="INFO", log_format="json")
        setup_logging(log_level="WARNING", log_format="console")


@pytest.mark.unit
class TestRequestContext:
    """Test request id context management."""

    def test_set_and_clear_request_id(self):
        """Test the request id round-trips through the context variable."""
        set_request_id("req-123")
        assert get_request_id() == "req-123"

        clear_request_id()
        assert get_request_id() is None

    def test_request_id_is_injected(self):
        """Test the processor adds the current request id."""
        set_request_id("req-456")
        try:
            event = add_request_id(None, "info", {"event": "hello"})
        finally:
            clear_request_id()

        assert event["request_id"] == "req-456"

    def test_no_request_id_outside_request(self):
        """Test nothing is added when no request is active."""
        clear_request_id()
        assert "request_id" not in add_request_id(None, "info", {"event": "hello"})


@pytest.mark.unit
class TestProcessors:
    """Test the custom structlog processors."""

    def test_redacts_email(self):
        """Test email addresses are masked in the message."""
        event = redact_pii(None, "info", {"event": "login for ada@example.com failed"})
        assert event["event"] == "login for [EMAIL] failed"

    def test_redacts_bearer_token(self):
        """Test bearer tokens are masked."""
        event = redact_pii(None, "info", {"event": "header Bearer abc.def.ghi"})
        assert "abc.def.ghi" not in event["event"]
        assert "Bearer [REDACTED]" in event["event"]

    def test_redacts_phone(self):
        """Test mobile numbers are masked."""
        event = redact_pii(None, "info", {"event": "sms to 13812345678"})
        assert event["event"] == "sms to [PHONE]"

    def test_structured_fields_untouched(self):
        """Test only the free-text event is rewritten."""
        event = redact_pii(None, "info", {"event": "ok", "email": "ada@example.com"})
        assert event["email"] == "ada@example.com"

    def test_level_name_upper_cased(self):
        """Test the level field is upper-cased."""
        assert add_log_level_name(None, "info", {"level": "info"})["level"] == "INFO"


@pytest.mark.unit
class TestLogStage:
    """Test the log_stage helper."""

    def test_log_stage_uses_enum_value(self):
        """Test the stage enum is logged by value at the given level."""
        logger = MagicMock()

        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", cache_key="user:1")

        logger.debug.assert_called_once_with("Cache hit", stage="2.0_CACHE_LOOKUP", cache_key="user:1")

    def test_log_stage_accepts_plain_string(self):
        """Test free-form stage tags pass through."""
        logger = MagicMock()

        log_stage(logger, "REDIS.2", "Connected")

        logger.info.assert_called_once_with("Connected", stage="REDIS.2")
