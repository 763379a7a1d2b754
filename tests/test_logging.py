"""Tests for logging configuration and secret redaction."""

import json
import logging

import pytest
import structlog

from mentormatch_auth.logging import REDACTED, configure_logging, get_logger, redact_secrets


@pytest.fixture(autouse=True)
def reset_structlog():  # type: ignore[no-untyped-def]
    root_level = logging.getLogger().level
    yield
    structlog.reset_defaults()
    logging.getLogger().setLevel(root_level)


class TestRedactSecrets:
    """Test suite for the redaction processor."""

    def test_masks_sensitive_keys(self) -> None:
        event = redact_secrets(
            None,  # type: ignore[arg-type]
            "info",
            {"event": "otp_issued", "code": "482913", "Password": "x", "email": "a@x.com"},
        )

        assert event["code"] == REDACTED
        assert event["Password"] == REDACTED
        assert event["email"] == "a@x.com"
        assert event["event"] == "otp_issued"


class TestConfigureLogging:
    """Test suite for structlog setup."""

    def test_json_output_is_redacted(self, caplog: pytest.LogCaptureFixture) -> None:
        configure_logging(level="INFO", fmt="json")

        with caplog.at_level(logging.INFO):
            get_logger("tests.json").info("otp_issued", identity="a@x.com", otp_code="482913")

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "otp_issued"
        assert payload["otp_code"] == REDACTED
        assert payload["level"] == "info"
        assert payload["logger"] == "tests.json"
        assert "timestamp" in payload

    def test_level_filters(self, caplog: pytest.LogCaptureFixture) -> None:
        configure_logging(level="WARNING", fmt="json")

        get_logger("tests.quiet").info("quiet")

        assert not [r for r in caplog.records if r.name == "tests.quiet"]
