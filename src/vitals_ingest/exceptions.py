"""
Custom exceptions for the ingestion pipeline.

Only conditions that end a phase are raised. Problems with a single
element, file or batch are collected in the phase's error list instead.
Each exception carries:
- A descriptive message
- An error code for import history and CLI output
- Optional details for debugging
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes recorded alongside failed imports."""

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Input
    EXPORT_NOT_FOUND = "EXPORT_NOT_FOUND"
    EXPORT_STREAM_ERROR = "EXPORT_STREAM_ERROR"
    ROUTE_FILE_ERROR = "ROUTE_FILE_ERROR"

    # Storage
    DATABASE_ERROR = "DATABASE_ERROR"
    BATCH_WRITE_FAILED = "BATCH_WRITE_FAILED"


class VitalsError(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for logs and reports."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class ExportNotFoundError(VitalsError):
    """Raised when an input path for a phase does not exist or cannot be read."""

    def __init__(self, path: str, details: Optional[Dict[str, Any]] = None) -> None:
        error_details = details or {}
        error_details["path"] = path
        super().__init__(
            message=f"Export not found at {path}",
            code=ErrorCode.EXPORT_NOT_FOUND,
            details=error_details,
        )


class ExportStreamError(VitalsError):
    """Raised when the export byte stream is corrupt. Fatal to the phase."""

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if line is not None:
            error_details["line"] = line
        super().__init__(
            message=message,
            code=ErrorCode.EXPORT_STREAM_ERROR,
            details=error_details,
        )


class RouteFileError(VitalsError):
    """Raised when a single route file cannot be parsed."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(
            message=f"{file_name}: {reason}",
            code=ErrorCode.ROUTE_FILE_ERROR,
            details={"file": file_name},
        )


class DatabaseError(VitalsError):
    """Raised for storage failures outside of batched writes."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.DATABASE_ERROR,
            details=details,
        )


class BatchWriteError(DatabaseError):
    """Describes a rolled-back batch. Recorded, not raised, by the writer."""

    def __init__(self, table: str, batch_size: int, cause: Exception) -> None:
        super().__init__(
            message=f"{table} batch insert failed: {cause}",
            details={"table": table, "batch_size": batch_size},
        )
        self.code = ErrorCode.BATCH_WRITE_FAILED
