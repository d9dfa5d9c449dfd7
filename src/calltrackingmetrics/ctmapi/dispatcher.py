"""Request dispatcher for the CallTrackingMetrics API.

Builds requests against the API base path, executes them through an
``httpx.Client`` and decodes JSON bodies. Holds no session state: the auth
token arrives as an ordinary ``auth_token`` payload entry.
"""

import threading
import time
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from .exceptions import DecodeError, TransportError
from .types import ClientStats

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.calltrackingmetrics.com/api/v1"

DEFAULT_CONNECT_TIMEOUT = 10.0

DEFAULT_TIMEOUT = 30.0

AUTH_TOKEN_PARAM = "auth_token"

# Methods whose payload travels in a form-encoded body.
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

# libcurl error numbers, most specific httpx exception first.
_TRANSPORT_ERROR_CODES: tuple[tuple[type[httpx.TransportError], int], ...] = (
    (httpx.UnsupportedProtocol, 1),
    (httpx.ProxyError, 5),
    (httpx.ConnectError, 7),
    (httpx.TimeoutException, 28),
)
_DEFAULT_TRANSPORT_ERROR_CODE = 56

_BODY_PREVIEW_LENGTH = 200


def transport_error_code(exc: httpx.TransportError) -> int:
    """Map an httpx transport exception to a libcurl error number."""
    for exc_type, code in _TRANSPORT_ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return _DEFAULT_TRANSPORT_ERROR_CODE


def flatten_params(payload: Mapping[str, Any], prefix: str | None = None) -> list[tuple[str, str]]:
    """Flatten a payload into form/query pairs using bracket notation.

    ``{"user": {"login": "a"}}`` becomes ``[("user[login]", "a")]`` and
    sequences are indexed (``ids[0]``). Booleans are sent as ``1``/``0`` and
    ``None`` values are dropped.

    Args:
        payload: Parameters to encode.
        prefix: Key of the enclosing mapping, used when recursing.

    Returns:
        List of ``(key, value)`` string pairs in payload order.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in payload.items():
        name = f"{prefix}[{key}]" if prefix is not None else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            pairs.extend(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend(flatten_params(dict(enumerate(value)), name))
        elif isinstance(value, bool):
            pairs.append((name, "1" if value else "0"))
        else:
            pairs.append((name, str(value)))
    return pairs


class RequestDispatcher:
    """Executes requests against the CallTrackingMetrics API.

    An injected ``httpx.Client`` is shared by every caller and left open by
    :meth:`close`. Without one, each thread lazily gets its own client
    configured with the dispatcher's timeouts.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.Client | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        stats: ClientStats | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            base_url: API root that every uri is appended to.
            http_client: Optional pre-built client used as the HTTP executor.
            connect_timeout: Connect timeout in seconds for owned clients.
            timeout: Overall timeout in seconds for owned clients.
            verify_ssl: Verify TLS certificates on owned clients.
            stats: Counters to update; a fresh set is created if omitted.

        Raises:
            ValueError: If base_url is empty or a timeout is not positive.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)
        if timeout <= 0 or connect_timeout <= 0:
            msg = "timeouts must be positive"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self.stats = stats if stats is not None else ClientStats()
        self._http_client = http_client
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._verify_ssl = verify_ssl
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Return the injected client or the calling thread's own client."""
        if self._http_client is not None:
            return self._http_client
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                headers={"Accept": "application/json"},
                timeout=self._timeout,
                verify=self._verify_ssl,
                follow_redirects=False,
            )
        return self._local.client

    def close(self) -> None:
        """Close the calling thread's owned client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    def build_url(self, uri: str) -> str:
        return f"{self.base_url}/{uri.lstrip('/')}"

    def split_payload(
        self,
        payload: Mapping[str, Any],
        method: str,
    ) -> tuple[list[tuple[str, str]], dict[str, str] | None]:
        """Split a payload into query parameters and form body.

        Methods without a body carry everything in the query string. For
        ``POST``/``PUT``/``PATCH`` the payload becomes the form body, except
        for the auth token which always stays in the query string.

        Returns:
            Tuple of (query pairs, form body or None).
        """
        if method not in BODY_METHODS:
            return flatten_params(payload), None

        body = dict(payload)
        token = body.pop(AUTH_TOKEN_PARAM, None)
        params = [(AUTH_TOKEN_PARAM, str(token))] if token is not None else []
        return params, dict(flatten_params(body))

    def request(
        self,
        uri: str,
        payload: Mapping[str, Any] | None = None,
        method: str = "GET",
    ) -> Any:
        """Send a request and return the decoded JSON body.

        HTTP error statuses are not raised: the API reports failures in its
        JSON body, which is returned as-is.

        Args:
            uri: Path relative to the base URL, including any suffix.
            payload: Query or body parameters.
            method: HTTP method (GET, POST, PUT, DELETE, ...).

        Returns:
            Decoded JSON value (usually a dict or list).

        Raises:
            TransportError: If the request could not be completed.
            DecodeError: If the body is not valid JSON.
        """
        method = method.upper()
        url = self.build_url(uri)
        params, data = self.split_payload(payload or {}, method)

        start_time = time.time()
        logger.debug(
            "Making API request",
            method=method,
            uri=uri,
            param_keys=[key for key, _ in params],
            body_keys=sorted(data) if data else [],
        )
        self.stats.increment("requests")
        request = self.client.build_request(method, url, params=params or None, data=data)
        response: httpx.Response | None = None
        try:
            # Stream so a body that fails content decoding still has a status.
            response = self.client.send(request, stream=True)
            response.read()
        except httpx.DecodingError as exc:
            self.stats.increment("decode_errors")
            status_code = response.status_code if response is not None else None
            logger.exception(
                "Undecodable API response body",
                method=method,
                uri=uri,
                status_code=status_code,
            )
            msg = f"Undecodable response body from CallTrackingMetrics (HTTP {status_code})"
            raise DecodeError(msg, status_code=status_code) from exc
        except httpx.TransportError as exc:
            self.stats.increment("transport_errors")
            code = transport_error_code(exc)
            logger.exception(
                "API request failed",
                method=method,
                uri=uri,
                code=code,
                duration_seconds=round(time.time() - start_time, 3),
            )
            raise TransportError(code, str(exc) or type(exc).__name__) from exc
        finally:
            if response is not None:
                response.close()

        logger.debug(
            "API request completed",
            method=method,
            uri=uri,
            status_code=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self.stats.increment("decode_errors")
            body = response.text[:_BODY_PREVIEW_LENGTH]
            logger.error(
                "Invalid JSON in API response",
                status_code=response.status_code,
                content_type=response.headers.get("content-type", ""),
            )
            msg = f"Invalid JSON response from CallTrackingMetrics (HTTP {response.status_code})"
            raise DecodeError(msg, status_code=response.status_code, body=body) from exc
