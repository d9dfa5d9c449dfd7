"""Tests for the Prometheus client statistics collector."""

import httpx
import pytest
from conftest import FakeApi

from calltrackingmetrics import collector
from calltrackingmetrics.ctmapi import CallTrackingMetricsClient, exceptions


def _metrics(ctm_collector: collector.ClientCollector) -> dict:
    return {m.name: m for m in ctm_collector.collect()}


def _active_state(metrics: dict) -> str:
    samples = metrics["ctm_api_session_state"].samples
    return next(s.labels["state"] for s in samples if s.value == 1)


def test_collect_on_idle_client(ctm_client: CallTrackingMetricsClient):
    """A new client reports zero counters and no session."""
    metrics = _metrics(collector.ClientCollector(ctm_client))

    assert metrics["ctm_api_requests"].samples[0].value == 0
    assert metrics["ctm_api_authentications"].samples[0].value == 0
    assert _active_state(metrics) == "no_session"


def test_collect_counts_requests_and_authentications(
    ctm_client: CallTrackingMetricsClient,
):
    ctm_client.call("accounts")
    metrics = _metrics(collector.ClientCollector(ctm_client))

    assert metrics["ctm_api_requests"].samples[0].value == 2
    assert metrics["ctm_api_authentications"].samples[0].value == 1
    assert _active_state(metrics) == "session_valid"


def test_collect_reports_authentication_failure(
    fake_api: FakeApi,
    ctm_client: CallTrackingMetricsClient,
):
    fake_api.auth_response = {"success": False}
    with pytest.raises(exceptions.AuthenticationError):
        ctm_client.call("accounts")

    metrics = _metrics(collector.ClientCollector(ctm_client))

    assert metrics["ctm_api_authentication_failures"].samples[0].value == 1
    assert _active_state(metrics) == "auth_failed"


def test_collect_error_kinds(
    fake_api: FakeApi,
    ctm_client: CallTrackingMetricsClient,
):
    fake_api.resource_handler = lambda _: httpx.Response(500, content=b"oops")
    with pytest.raises(exceptions.DecodeError):
        ctm_client.call("accounts", requires_auth=False)

    samples = _metrics(collector.ClientCollector(ctm_client))["ctm_api_request_errors"].samples
    by_kind = {s.labels["kind"]: s.value for s in samples if s.name.endswith("_total")}

    assert by_kind == {"transport": 0, "decode": 1}


def test_collect_reports_malformed_session(
    fake_api: FakeApi,
    ctm_client: CallTrackingMetricsClient,
):
    """A session without expiry is reported instead of breaking the scrape."""
    fake_api.auth_response = {"success": True, "token": "abc"}
    ctm_client.authenticate()

    metrics = _metrics(collector.ClientCollector(ctm_client))

    assert _active_state(metrics) == collector.MALFORMED_STATE


def test_collect_never_triggers_network(
    fake_api: FakeApi,
    ctm_client: CallTrackingMetricsClient,
):
    list(collector.ClientCollector(ctm_client).collect())
    assert fake_api.requests == []


def test_description_defaults_to_base_url(ctm_client: CallTrackingMetricsClient):
    metrics = _metrics(collector.ClientCollector(ctm_client))
    assert ctm_client.base_url in metrics["ctm_api_requests"].documentation
