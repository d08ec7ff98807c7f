"""Custom exception hierarchy for the mixed-content gateway."""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure taxonomy surfaced to callers."""

    CONFIGURATION = "ConfigurationError"
    UPSTREAM_UNREACHABLE = "UpstreamUnreachable"
    UPSTREAM_UNAUTHORIZED = "UpstreamUnauthorized"
    UPSTREAM_ERROR = "UpstreamError"
    INTERNAL = "InternalError"


class GatewayError(Exception):
    """Base exception for all gateway errors.

    Attributes:
        message: Human-readable error message
        kind: Taxonomy entry the error belongs to
    """

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(GatewayError):
    """Raised when the backend base URL is missing or not plain HTTP."""

    kind = ErrorKind.CONFIGURATION


class UpstreamUnreachable(GatewayError):
    """Raised when the outbound call cannot be completed.

    Attributes:
        message: Error message
        target_url: URL the gateway attempted to reach (optional)
    """

    kind = ErrorKind.UPSTREAM_UNREACHABLE

    def __init__(self, message: str, target_url: str | None = None) -> None:
        super().__init__(message)
        self.target_url = target_url


class UpstreamTimeout(UpstreamUnreachable):
    """Raised when the outbound call exceeds its transport deadline."""
