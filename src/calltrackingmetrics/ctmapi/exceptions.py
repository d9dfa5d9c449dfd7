"""Error types raised by the CallTrackingMetrics API client.

Callers can tell a credential problem (:class:`AuthenticationError`) apart
from connectivity (:class:`TransportError`) and payload
(:class:`DecodeError`) failures. None of them are retried by the client.
"""


class CallTrackingMetricsError(Exception):
    """Base class for all CallTrackingMetrics client errors."""


class AuthenticationError(CallTrackingMetricsError):
    """Raised when the API rejects the configured credentials."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid CallTrackingMetrics authentication credentials: {reason}")


class MalformedSessionError(CallTrackingMetricsError):
    """Raised when a held session carries no usable expiry information."""


class TransportError(CallTrackingMetricsError):
    """Raised when the API cannot be reached.

    ``code`` follows libcurl's error numbering so that it stays meaningful
    regardless of which HTTP library raised the underlying error.
    """

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"Error connecting to CallTrackingMetrics: [{code}] {message}")


class DecodeError(CallTrackingMetricsError):
    """Raised when a response body is not valid JSON."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
