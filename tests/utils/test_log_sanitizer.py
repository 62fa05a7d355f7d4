"""Tests for log sanitization filter.

Import logs carry export paths and profile attributes; these tests check
that personal data is redacted before it reaches a handler.
"""

import logging
from io import StringIO

import pytest

from vitals_ingest.utils.log_sanitizer import (
    LogSanitizationFilter,
    install_log_sanitizer,
    sanitize_string,
)


class TestLogSanitizationFilter:
    """Test cases for LogSanitizationFilter."""

    @pytest.fixture
    def sanitizer(self) -> LogSanitizationFilter:
        return LogSanitizationFilter()

    def test_redacts_email(self, sanitizer: LogSanitizationFilter) -> None:
        result = sanitizer._sanitize("Export owner jane.doe@example.com")
        assert "jane.doe@example.com" not in result
        assert "[REDACTED_EMAIL]" in result

    def test_redacts_export_date_of_birth(self, sanitizer: LogSanitizationFilter) -> None:
        result = sanitizer._sanitize('HKCharacteristicTypeIdentifierDateOfBirth="1990-01-01"')
        assert "1990-01-01" not in result
        assert "[REDACTED_DOB]" in result

    def test_redacts_date_of_birth_field(self, sanitizer: LogSanitizationFilter) -> None:
        result = sanitizer._sanitize("profile date_of_birth=1985-06-30 sex=Female")
        assert "1985-06-30" not in result
        assert "sex=Female" in result

    def test_redacts_home_directory_user(self, sanitizer: LogSanitizationFilter) -> None:
        result = sanitizer._sanitize("Reading /Users/jane/Downloads/export/export.xml")
        assert "/Users/jane/" not in result
        assert "/Users/[REDACTED_USER]/Downloads/export/export.xml" in result

    def test_leaves_plain_messages_alone(self, sanitizer: LogSanitizationFilter) -> None:
        text = "Imported 10,000 rows into health_metrics"
        assert sanitizer._sanitize(text) == text

    def test_sanitizes_args(self, sanitizer: LogSanitizationFilter) -> None:
        record = logging.LogRecord(
            "test", logging.INFO, __file__, 1, "Reading %s (%d)", ("/home/bob/export.xml", 3), None
        )
        sanitizer.filter(record)
        assert record.args == ("/home/[REDACTED_USER]/export.xml", 3)


class TestInstall:
    """Tests for installing the filter on a logger."""

    def test_named_logger_output_is_redacted(self) -> None:
        stream = StringIO()
        logger = logging.getLogger("vitals_ingest.tests.sanitizer")
        logger.setLevel(logging.INFO)
        logger.propagate = False
        handler = logging.StreamHandler(stream)
        logger.addHandler(handler)
        try:
            install_log_sanitizer("vitals_ingest.tests.sanitizer")
            logger.info("Import requested by bob@example.org")
        finally:
            logger.removeHandler(handler)

        output = stream.getvalue()
        assert "bob@example.org" not in output
        assert "[REDACTED_EMAIL]" in output

    def test_sanitize_string(self) -> None:
        assert sanitize_string("mail me: a@b.io") == "mail me: [REDACTED_EMAIL]"
