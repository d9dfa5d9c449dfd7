"""Prometheus collector for CallTrackingMetrics client statistics.

Exposes request, error and authentication counters of a client together with
its current session state, so applications embedding the client can register
it with their own registry.
"""

from collections.abc import Iterator

import structlog
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .ctmapi import CallTrackingMetricsClient, MalformedSessionError
from .ctmapi.types import SessionState

logger = structlog.get_logger(__name__)

MALFORMED_STATE = "malformed"


class ClientCollector(Collector):
    """Prometheus collector reading a client's counters on each scrape.

    Never triggers authentication or network traffic.
    """

    def __init__(self, client: CallTrackingMetricsClient, description: str | None = None):
        """Initialize the collector.

        Args:
            client: Client whose statistics are exported.
            description: Description of the client for metric help texts
                (defaults to the client's base URL).
        """
        self._client = client
        self._desc = description or client.base_url

    def _session_state(self) -> str:
        try:
            return self._client.session.state.value
        except MalformedSessionError:
            logger.exception("Failed to read session state")
            return MALFORMED_STATE

    def collect(self) -> Iterator[Metric]:
        """Collect client metrics for a Prometheus scrape.

        Yields:
            Counter families for requests, errors and authentications,
            followed by the session state gauge.
        """
        stats = self._client.stats.snapshot()

        requests = CounterMetricFamily(
            "ctm_api_requests",
            f"requests sent to {self._desc}",
        )
        requests.add_metric([], stats["requests"])
        yield requests

        errors = CounterMetricFamily(
            "ctm_api_request_errors",
            f"failed requests to {self._desc} by kind",
            labels=["kind"],
        )
        errors.add_metric(["transport"], stats["transport_errors"])
        errors.add_metric(["decode"], stats["decode_errors"])
        yield errors

        authentications = CounterMetricFamily(
            "ctm_api_authentications",
            f"authentication exchanges with {self._desc}",
        )
        authentications.add_metric([], stats["authentications"])
        yield authentications

        failures = CounterMetricFamily(
            "ctm_api_authentication_failures",
            f"authentication exchanges rejected by {self._desc}",
        )
        failures.add_metric([], stats["authentication_failures"])
        yield failures

        current = self._session_state()
        state = GaugeMetricFamily(
            "ctm_api_session_state",
            "current session state, 1 for the active state",
            labels=["state"],
        )
        for candidate in [s.value for s in SessionState] + [MALFORMED_STATE]:
            state.add_metric([candidate], 1 if candidate == current else 0)
        yield state
