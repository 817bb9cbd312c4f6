"""Exceptions raised outside the codecs.

The parsers never raise for bad input; these cover the layers around them
(format dispatch, uploads, configuration).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"
    CONFIG_INVALID = "CONFIG_INVALID"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PimCodecError(Exception):
    """Base exception for pimcodec."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class UnsupportedFormatError(PimCodecError):
    """Content is neither vCard nor iCalendar."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.UNSUPPORTED_FORMAT, details)


class UploadTooLargeError(PimCodecError):
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Upload of {size} bytes exceeds the {limit} byte limit",
            ErrorCode.UPLOAD_TOO_LARGE,
            {"size": size, "limit": limit},
        )


class ConfigurationError(PimCodecError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIG_INVALID, details)


__all__ = [
    "ErrorCode",
    "PimCodecError",
    "UnsupportedFormatError",
    "UploadTooLargeError",
    "ConfigurationError",
]
