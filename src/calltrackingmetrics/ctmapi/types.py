"""Data types for the CallTrackingMetrics API client.

Pydantic models for the credential set, the authentication exchange and the
session it produces, plus the session state enum and request counters shared
by the dispatcher and the session manager.
"""

import enum
import threading
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Credentials(BaseModel):
    """Login and password used for the authentication exchange."""

    model_config = ConfigDict(frozen=True)

    login: str
    password: str

    def as_payload(self) -> dict[str, Any]:
        """Return the nested form payload expected by ``/authentication``."""
        return {"user": {"login": self.login, "password": self.password}}

    def __repr__(self) -> str:
        return f"Credentials(login={self.login!r}, password='***')"


class AuthenticationResponse(BaseModel):
    """Decoded body of the ``/authentication`` endpoint.

    Fields are read leniently: any falsy ``success`` is a rejection, and
    ``message`` may be a string, a list or a field-error mapping. Typed
    validation of the token and expiry happens when building the
    :class:`Session`.
    """

    model_config = ConfigDict(extra="allow")

    success: Any = None
    token: Any = None
    expires: Any = None
    message: Any = None

    @property
    def reason(self) -> str | None:
        """Rejection message as text, or None if the server gave none."""
        if not self.message:
            return None
        return self.message if isinstance(self.message, str) else str(self.message)


class Session(BaseModel):
    """Token and expiry returned by a successful authentication.

    ``expires_at`` is ``None`` when the server omitted it, which the session
    manager reports as a malformed session. Naive timestamps are taken as UTC.
    """

    token: str | None = None
    expires_at: datetime | None = None
    raw: dict[str, Any] = {}

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once ``now`` has reached ``expires_at``."""
        if self.expires_at is None:
            msg = "session has no expiry"
            raise ValueError(msg)
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


class SessionState(str, enum.Enum):
    """Authentication state as seen by a dispatched call."""

    NO_SESSION = "no_session"
    SESSION_VALID = "session_valid"
    SESSION_EXPIRED = "session_expired"
    AUTH_FAILED = "auth_failed"


@dataclass
class ClientStats:
    """Thread-safe request and authentication counters."""

    requests: int = 0
    transport_errors: int = 0
    decode_errors: int = 0
    authentications: int = 0
    authentication_failures: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)

    def snapshot(self) -> dict[str, int]:
        """Return a consistent copy of all counters."""
        with self._lock:
            return {
                f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")
            }
