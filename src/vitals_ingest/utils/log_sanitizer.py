"""Log sanitization filter to keep personal data out of import logs.

Import logs mention file paths, profile attributes and error messages
from the export. This filter redacts before records are emitted:
- Email addresses
- Dates of birth (profile attributes and ``date_of_birth`` fields)
- User names embedded in home directory paths

Usage:
    from vitals_ingest.utils.log_sanitizer import install_log_sanitizer

    # Apply to all loggers at CLI startup
    install_log_sanitizer()
"""

import logging
import re
from typing import Any


class LogSanitizationFilter(logging.Filter):
    """Logging filter that redacts personal information from log messages."""

    # Order matters - more specific patterns come before general ones
    PATTERNS: list[tuple[re.Pattern, str]] = [
        # HealthKit characteristic attribute as it appears in the export
        (re.compile(r'(HKCharacteristicTypeIdentifierDateOfBirth["\']?\s*[:=]\s*["\']?)[0-9-]+'), r'\1[REDACTED_DOB]'),

        # Column / field style
        (re.compile(r'(date_of_birth["\']?\s*[:=]\s*["\']?)[0-9-]+', re.IGNORECASE), r'\1[REDACTED_DOB]'),
        (re.compile(r'(Date of Birth["\']?\s*[:,=]\s*["\']?)[^"\',\n]+', re.IGNORECASE), r'\1[REDACTED_DOB]'),

        # Home directories: /Users/<name>/..., /home/<name>/...
        (re.compile(r'(/(?:Users|home)/)[^/\s]+'), r'\1[REDACTED_USER]'),

        # Email addresses
        (re.compile(r'\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b'), '[REDACTED_EMAIL]'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place and let it through."""
        if record.msg:
            record.msg = self._sanitize(str(record.msg))

        if record.args:
            record.args = self._sanitize_args(record.args)

        return True

    def _sanitize(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _sanitize_args(self, args: Any) -> Any:
        """Recursively sanitize log arguments."""
        if isinstance(args, str):
            return self._sanitize(args)
        elif isinstance(args, tuple):
            return tuple(self._sanitize_args(arg) for arg in args)
        elif isinstance(args, list):
            return [self._sanitize_args(arg) for arg in args]
        elif isinstance(args, dict):
            return {k: self._sanitize_args(v) for k, v in args.items()}
        else:
            # Numbers and other primitives keep their type unless redacted
            str_val = str(args)
            sanitized = self._sanitize(str_val)
            return sanitized if sanitized != str_val else args


def install_log_sanitizer(logger_name: str | None = None) -> None:
    """Install the sanitization filter.

    Args:
        logger_name: If provided, install only on the named logger.
                    If None, install on the root logger and its handlers.
    """
    sanitizer = LogSanitizationFilter()

    if logger_name:
        logging.getLogger(logger_name).addFilter(sanitizer)
    else:
        root_logger = logging.getLogger()
        root_logger.addFilter(sanitizer)

        # Filters on the root logger do not apply to records from child
        # loggers, so the handlers need it too
        for handler in root_logger.handlers:
            handler.addFilter(sanitizer)


def sanitize_string(text: str) -> str:
    """Sanitize a string outside the logging system (e.g. stored error logs)."""
    return LogSanitizationFilter()._sanitize(text)
