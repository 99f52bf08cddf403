"""
Gateway error taxonomy.
Every failure the gateway can report maps to one of these types, which carry
the HTTP status and the stable error code used in response bodies.
"""
from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for errors that translate directly into an HTTP response."""

    status_code = 500
    error_code = "internal_server_error"

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationError(GatewayError):
    status_code = 400
    error_code = "validation_error"


class RateLimitExceeded(GatewayError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str = "Too many requests, please try again later.", retry_after_seconds: int = 0):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class ConfigurationError(GatewayError):
    status_code = 500
    error_code = "configuration_error"


class UpstreamError(GatewayError):
    """Raised by upstream clients; subclasses describe what went wrong."""

    error_code = "upstream_error"


class UpstreamHttpError(UpstreamError):
    """The provider answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(message, details=details, status_code=status_code)


class UpstreamUnreachable(UpstreamError):
    """No response was received from the provider."""

    status_code = 504
    error_code = "upstream_unreachable"

    def __init__(self, message: str = "Gateway Timeout - No response from API"):
        super().__init__(message)


class UpstreamMalformed(UpstreamError):
    """The provider answered but the body is not JSON."""

    status_code = 500
    error_code = "upstream_malformed"

    def __init__(self, message: str = "Upstream returned an invalid response"):
        super().__init__(message)
