"""Tests for Prometheus metrics middleware.

The prometheus-client registry is global and counters only go up, so
every assertion is on a DELTA: read, act, read again.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import COURSE_ID, auth, seed_reference_course


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    after = _get_sample("http_requests_total", labels)
    assert after - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    after = _get_sample("http_request_duration_seconds_count", labels)
    assert after - before >= 1


def test_endpoint_label_is_route_template(client: TestClient, admin_token: str) -> None:
    seed_reference_course()
    labels = {
        "method": "GET",
        "endpoint": "/v1/instructor/courses/{course_id}/students",
        "status_code": "200",
    }
    before = _get_sample("http_requests_total", labels)
    client.get(f"/v1/instructor/courses/{COURSE_ID}/students", headers=auth(admin_token))
    after = _get_sample("http_requests_total", labels)
    assert after - before == 1


def test_metrics_endpoint_exposes_progress_metrics(
    client: TestClient, admin_token: str
) -> None:
    seed_reference_course()
    client.get(f"/v1/instructor/courses/{COURSE_ID}/students", headers=auth(admin_token))
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "progress_cache_operations_total" in resp.text
    assert "progress_aggregation_seconds" in resp.text


def test_aggregation_timed_once_per_cache_miss(
    client: TestClient, admin_token: str
) -> None:
    seed_reference_course()
    labels = {"report": "course"}
    before = _get_sample("progress_aggregation_seconds_count", labels)
    for _ in range(3):
        client.get(f"/v1/instructor/courses/{COURSE_ID}/students", headers=auth(admin_token))
    after = _get_sample("progress_aggregation_seconds_count", labels)
    assert after - before == 1


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    after = _get_sample("http_requests_total", labels)
    assert after == before
