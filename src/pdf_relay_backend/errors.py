"""
Error types raised by the staging, relay and upload layers.

Every error carries the HTTP status it maps to and any extra fields that
should be merged into the JSON error body. The FastAPI app renders them all
through a single exception handler (see ``main.create_app``).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for all errors surfaced to API clients."""

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(self.message)


class ConfigurationError(Exception):
    """Raised when the service configuration is missing or invalid."""


class NoFileProvided(RelayError):
    def __init__(self, message: str = "No file found") -> None:
        super().__init__(message, 400)


class NoFilesProvided(RelayError):
    def __init__(self, message: str = "No files found") -> None:
        super().__init__(message, 400)


class TooManyFiles(RelayError):
    def __init__(self, max_files: int) -> None:
        super().__init__(
            f"Too many files: at most {max_files} per batch",
            400,
            {"maxFiles": max_files},
        )


class UnsupportedMediaType(RelayError):
    def __init__(self, filename: str, content_type: Optional[str]) -> None:
        super().__init__(
            f"Only PDF uploads are supported ({filename}: {content_type or 'unknown type'})",
            415,
        )


class PayloadTooLarge(RelayError):
    def __init__(self, max_size_mb: int) -> None:
        super().__init__("File too large", 413, {"maxSize": f"{max_size_mb}MB"})


class InternalStagingFailure(RelayError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 500)


class DownstreamUnreachable(RelayError):
    """Connection-level failure: refused, DNS, TLS or protocol error."""

    hint = "Check that the downstream workflow endpoint is running and reachable"

    def __init__(self, message: str) -> None:
        super().__init__(message, 500, {"hint": self.hint})


class DownstreamTimeout(DownstreamUnreachable):
    pass


class DownstreamRejected(RelayError):
    """The downstream answered with a non-2xx status; forwarded verbatim."""

    def __init__(self, status_code: int, body: Any) -> None:
        self.body = body
        super().__init__("Downstream workflow rejected the request", status_code, {"details": body})
