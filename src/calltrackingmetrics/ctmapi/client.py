"""CallTrackingMetrics API client.

Composes the request dispatcher and the session manager into the generic
``call`` operation: authenticate on demand, attach the token, dispatch
``<uri>.json`` and return the decoded body.
"""

from collections.abc import Mapping
from typing import Any

import httpx

from .dispatcher import (
    AUTH_TOKEN_PARAM,
    DEFAULT_BASE_URL,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_TIMEOUT,
    RequestDispatcher,
)
from .session import SessionManager
from .types import ClientStats, Session

RESOURCE_SUFFIX = ".json"


class CallTrackingMetricsClient:
    """Client for the CallTrackingMetrics REST API.

    Credentials are not used until the first call that requires
    authentication, or until :meth:`authenticate` is called explicitly.

    Can be used as a context manager for automatic cleanup.

    Example::

        with CallTrackingMetricsClient("ACCESS KEY", "SECRET KEY") as ctm:
            accounts = ctm.call("accounts")
            calls = ctm.account_call(999, "calls", {"page": 2})
    """

    def __init__(
        self,
        login: str,
        password: str,
        http_client: httpx.Client | None = None,
        base_url: str = DEFAULT_BASE_URL,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
    ):
        """Initialize the client.

        Args:
            login: Access key or account name.
            password: Secret key or account password.
            http_client: Optional ``httpx.Client`` used for every request.
            base_url: API root (default: the public v1 endpoint).
            connect_timeout: Connect timeout in seconds (default: 10.0).
            timeout: Overall request timeout in seconds (default: 30.0).
            verify_ssl: Verify TLS certificates (default: True).
        """
        self.stats = ClientStats()
        self.dispatcher = RequestDispatcher(
            base_url=base_url,
            http_client=http_client,
            connect_timeout=connect_timeout,
            timeout=timeout,
            verify_ssl=verify_ssl,
            stats=self.stats,
        )
        self.session = SessionManager(login, password, self.dispatcher)

    @property
    def base_url(self) -> str:
        return self.dispatcher.base_url

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        self.dispatcher.close()

    def call(
        self,
        uri: str,
        payload: Mapping[str, Any] | None = None,
        method: str = "GET",
        requires_auth: bool = True,
    ) -> Any:
        """Call an API endpoint.

        ``uri`` is everything after the base URL and before ``.json``, so
        ``call("accounts")`` requests ``/api/v1/accounts.json``.

        Args:
            uri: Resource path relative to the base URL.
            payload: Query parameters (GET) or form fields (POST/PUT).
            method: HTTP method (default: GET).
            requires_auth: Authenticate on demand and attach the token.

        Returns:
            Decoded JSON response.

        Raises:
            AuthenticationError: If on-demand authentication was rejected.
            MalformedSessionError: If the held session has no expiry.
            TransportError: If the API cannot be reached.
            DecodeError: If the response is not valid JSON.
        """
        params = dict(payload or {})
        if requires_auth:
            token = self.session.ensure_token()
            if token:
                params[AUTH_TOKEN_PARAM] = token
        return self.dispatcher.request(f"{uri}{RESOURCE_SUFFIX}", params, method)

    def account_call(
        self,
        account_id: int | str,
        uri: str,
        payload: Mapping[str, Any] | None = None,
        method: str = "GET",
        requires_auth: bool = True,
    ) -> Any:
        """Call an account scoped endpoint.

        ``account_call(999, "calls")`` requests
        ``/api/v1/accounts/999/calls.json``. See :meth:`call`.
        """
        return self.call(f"accounts/{account_id}/{uri}", payload, method, requires_auth)

    api = call
    account = account_call

    def authenticate(self) -> Session:
        return self.session.authenticate()

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    def get_token(self) -> str | None:
        return self.session.get_token()

    def clear_session(self) -> None:
        self.session.clear_session()

    def set_credentials(self, login: str, password: str) -> None:
        self.session.set_credentials(login, password)
