"""CallTrackingMetrics REST API client package.

Provides a small HTTP client for the CallTrackingMetrics API that handles the
token-based session lifecycle and returns decoded JSON responses.

Exports:
    CallTrackingMetricsClient: Client with on-demand authentication.
    RequestDispatcher: Low-level request building and JSON decoding.
    SessionManager: Credentials, token, expiry and failure flag.
    types: Module containing Pydantic models for sessions and credentials.
    DEFAULT_BASE_URL: Public API root.
    DEFAULT_CONNECT_TIMEOUT: Default connect timeout.
    DEFAULT_TIMEOUT: Default overall request timeout.
"""

from . import types
from .client import CallTrackingMetricsClient
from .dispatcher import (
    DEFAULT_BASE_URL,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_TIMEOUT,
    RequestDispatcher,
)
from .exceptions import (
    AuthenticationError,
    CallTrackingMetricsError,
    DecodeError,
    MalformedSessionError,
    TransportError,
)
from .session import SessionManager

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_TIMEOUT",
    "AuthenticationError",
    "CallTrackingMetricsClient",
    "CallTrackingMetricsError",
    "DecodeError",
    "MalformedSessionError",
    "RequestDispatcher",
    "SessionManager",
    "TransportError",
    "types",
]
