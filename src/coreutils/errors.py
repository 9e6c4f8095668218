"""
Sales report exception hierarchy.

Recoverable conditions (throttling, transient fetch failures, malformed
events) are contained inside the ingest loop. Only ConfigurationError and
FatalFetchError are expected to reach the process boundary.
"""

from typing import Optional


class SalesReportError(Exception):
    """Base exception for all sales report failures."""


class ConfigurationError(SalesReportError):
    """Raised for missing or invalid run configuration (fatal, never retried)."""


class ThrottleCondition(SalesReportError):
    """Raised when the events API asks us to slow down."""

    def __init__(self, detail: str, suggested_seconds: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.suggested_seconds = suggested_seconds


class TransientFetchError(SalesReportError):
    """Raised for a single failed page fetch (transport error, bad body)."""


class FatalFetchError(SalesReportError):
    """Raised once consecutive transient failures reach the retry threshold."""

    def __init__(self, message: str, attempts: int, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class MalformedEventError(SalesReportError):
    """Raised when a single event record cannot be normalized."""


class MalformedPageError(TransientFetchError):
    """Raised when a JSON body is neither an events page nor a throttle message."""
