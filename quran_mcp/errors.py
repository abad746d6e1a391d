"""
Error types and classification for Quran API failures.

Failures that cross the client boundary come in several shapes: our own
QuranAPIError/QuranAuthError (carrying an HTTP status), httpx transport
exceptions (DNS failures, refused connections, timeouts), pydantic errors from
unexpected payloads, or anything else. The tool handlers don't care about the
concrete type; they need a category to show the caller. classify_error()
collapses every exception into one ErrorKind and falls back to UNKNOWN
instead of failing.
"""

import json
from enum import Enum

import httpx
import pydantic


class ConfigurationError(Exception):
    """
    Raised when required configuration is missing or invalid.

    This is a startup failure: the server refuses to register any tool
    without usable credentials.
    """


class QuranAPIError(Exception):
    """
    Raised when the Quran API answers with a non-success status.

    Attributes:
        message: Human-readable error description (from the upstream body if available)
        status_code: HTTP status returned by the upstream, None if not applicable
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class QuranAuthError(QuranAPIError):
    """Raised when the OAuth2 server rejects the client credentials."""


class ErrorKind(str, Enum):
    """Caller-visible failure categories."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    UPSTREAM_REQUEST = "upstream-request"
    NETWORK = "network"
    UNKNOWN = "unknown"


_AUTH_STATUSES = {401, 403}
_VALIDATION_STATUSES = {400, 404, 422}


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised while talking to the Quran API to an ErrorKind."""
    if isinstance(exc, QuranAuthError):
        return ErrorKind.AUTHENTICATION

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        if status_code in _AUTH_STATUSES:
            return ErrorKind.AUTHENTICATION
        if status_code in _VALIDATION_STATUSES:
            return ErrorKind.VALIDATION
        return ErrorKind.UPSTREAM_REQUEST

    if isinstance(exc, httpx.TransportError):
        return ErrorKind.NETWORK
    # Payload that doesn't match our models: the upstream answered, but not
    # with what we asked for.
    if isinstance(exc, (pydantic.ValidationError, json.JSONDecodeError)):
        return ErrorKind.UPSTREAM_REQUEST
    if isinstance(exc, ValueError):
        return ErrorKind.VALIDATION

    return ErrorKind.UNKNOWN
