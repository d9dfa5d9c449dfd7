"""Session lifecycle for the CallTrackingMetrics API.

Owns the credentials, the current token and its expiry, and the failure flag
that stops automatic re-authentication once the API has rejected the
credentials. The flag is only cleared by :meth:`SessionManager.set_credentials`,
:meth:`SessionManager.clear_session` or a successful explicit
:meth:`SessionManager.authenticate`.
"""

import threading
from datetime import datetime, timezone

import pydantic
import structlog

from .dispatcher import RequestDispatcher
from .exceptions import AuthenticationError, MalformedSessionError
from .types import AuthenticationResponse, Credentials, Session, SessionState

logger = structlog.get_logger(__name__)

AUTHENTICATION_URI = "authentication"

NO_REASON_PROVIDED = "no reason provided"


class SessionManager:
    """Holds the authentication state for one credential set.

    State changes run under a re-entrant lock so that concurrent callers
    trigger at most one authentication exchange at a time.
    """

    def __init__(self, login: str, password: str, dispatcher: RequestDispatcher):
        self._dispatcher = dispatcher
        self._lock = threading.RLock()
        self._credentials: Credentials
        self._session: Session | None = None
        self._auth_failed = False
        self.set_credentials(login, password)

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def session(self) -> Session | None:
        """The current session, or None before the first authentication."""
        return self._session

    @property
    def auth_failed(self) -> bool:
        return self._auth_failed

    @property
    def state(self) -> SessionState:
        """Current authentication state.

        Raises:
            MalformedSessionError: If the session has no expiry.
        """
        with self._lock:
            if self._auth_failed:
                return SessionState.AUTH_FAILED
            if self._session is None:
                return SessionState.NO_SESSION
            if self.is_expired():
                return SessionState.SESSION_EXPIRED
            return SessionState.SESSION_VALID

    def set_credentials(self, login: str, password: str) -> None:
        """Replace the credentials and drop any session and failure flag."""
        with self._lock:
            self._credentials = Credentials(login=login, password=password)
            self.clear_session()

    def clear_session(self) -> None:
        """Reset to the initial unauthenticated state."""
        with self._lock:
            self._session = None
            self._auth_failed = False

    def get_token(self) -> str | None:
        session = self._session
        return session.token if session is not None else None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True if no session is held or its expiry has passed.

        Raises:
            MalformedSessionError: If the session has no expiry.
        """
        session = self._session
        if session is None:
            return True
        if session.expires_at is None:
            msg = "Malformed CallTrackingMetrics authentication information"
            raise MalformedSessionError(msg)
        return session.is_expired(now or datetime.now(timezone.utc))

    def is_authenticated(self) -> bool:
        """Return True if a session is held and has not expired.

        Raises:
            MalformedSessionError: If the session has no expiry.
        """
        if self._session is None:
            return False
        return not self.is_expired()

    def authenticate(self) -> Session:
        """Run the authentication exchange with the stored credentials.

        Not retried on failure. A rejection sets the failure flag, which
        keeps :meth:`ensure_token` from authenticating again until the state
        is reset.

        Returns:
            The newly stored session.

        Raises:
            AuthenticationError: If the API rejects the credentials.
            MalformedSessionError: If the returned token or expiry is unusable.
            TransportError: If the API cannot be reached.
            DecodeError: If the response is not valid JSON.
        """
        with self._lock:
            logger.info("Authenticating", login=self._credentials.login)
            self._dispatcher.stats.increment("authentications")
            data = self._dispatcher.request(
                AUTHENTICATION_URI,
                self._credentials.as_payload(),
                "POST",
            )

            response = (
                AuthenticationResponse.model_validate(data)
                if isinstance(data, dict)
                else AuthenticationResponse()
            )
            if not response.success:
                self._session = None
                self._auth_failed = True
                self._dispatcher.stats.increment("authentication_failures")
                reason = response.reason or NO_REASON_PROVIDED
                logger.warning("Authentication rejected", login=self._credentials.login, reason=reason)
                raise AuthenticationError(reason)

            try:
                session = Session(token=response.token, expires_at=response.expires, raw=data)
            except pydantic.ValidationError as exc:
                msg = (
                    "Malformed CallTrackingMetrics authentication information: "
                    f"token={type(response.token).__name__}, expires={response.expires!r}"
                )
                raise MalformedSessionError(msg) from exc

            self._session = session
            self._auth_failed = False
            logger.info(
                "Authenticated",
                login=self._credentials.login,
                expires_at=session.expires_at.isoformat() if session.expires_at else None,
            )
            return session

    def ensure_token(self) -> str | None:
        """Authenticate if needed and return the token to attach.

        Authenticates only when no valid session is held and the failure flag
        is clear. With the flag set, returns whatever token is held (None
        after a rejection) without contacting the API.

        Raises:
            AuthenticationError: If an exchange was attempted and rejected.
            MalformedSessionError: If the held session has no expiry.
        """
        with self._lock:
            if not self._auth_failed and not self.is_authenticated():
                self.authenticate()
            return self.get_token()
