import re

from fastapi.testclient import TestClient
from starlette.requests import Request

from campadmin.main import app
from campadmin.middleware.performance import metric_key
from campadmin.observability.perf_metrics import PerformanceMetrics

client = TestClient(app)


def test_health_reports_configuration() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["api_version"] == "v1"
    assert payload["stage_image_bucket"] == "stages"
    assert "stages" in payload["entities"]


def test_new_structured_reference() -> None:
    response = client.get("/v1/references/structured")

    assert response.status_code == 200
    assert re.match(r"^\+\+\+\d{3}/\d{4}/\d{5}\+\+\+$", response.json()["reference"])


def test_validate_structured_reference() -> None:
    valid = client.post("/v1/references/structured/validate", json={"reference": "+++123/4567/89095+++"})
    invalid = client.post("/v1/references/structured/validate", json={"reference": "+++123/4567/89096+++"})

    assert valid.json() == {"reference": "+++123/4567/89095+++", "valid": True}
    assert invalid.json()["valid"] is False


def test_correlation_id_is_generated_when_missing_or_malformed() -> None:
    response = client.get("/v1/references/structured", headers={"x-correlation-id": "bad id with spaces"})

    correlation_id = response.headers["x-correlation-id"]
    assert correlation_id != "bad id with spaces"
    assert re.match(r"^[0-9a-f]{32}$", correlation_id)


def test_monitored_routes_report_latency_headers() -> None:
    response = client.get("/v1/references/structured")

    assert float(response.headers["x-api-latency-ms"]) >= 0
    assert int(response.headers["x-api-sample-count"]) >= 1


def test_performance_metrics_snapshot() -> None:
    client.get("/v1/references/structured")

    response = client.get("/v1/metrics/performance")

    assert response.status_code == 200
    payload = response.json()
    assert "GET /v1/references/structured" in payload["api"]
    assert "gateway" in payload
    assert "slowest_gateway_operations" in payload


def test_entity_routes_are_tracked_per_entity(gateway, monkeypatch) -> None:
    monkeypatch.setattr("campadmin.api.routes.entities.get_gateway", lambda: gateway)
    client.get("/v1/schools")

    payload = client.get("/v1/metrics/performance").json()

    assert "GET /v1/schools" in payload["api"]
    assert "GET /v1/{entity}" not in payload["api"]


def test_gateway_failures_are_counted_by_code() -> None:
    metrics = PerformanceMetrics(max_samples=3)
    for duration in (5.0, 10.0, 20.0, 40.0):
        metrics.record_gateway("select stages", duration)
    metrics.record_gateway("select stages", 1.0, "not_found")

    summary = metrics.snapshot()["gateway"]["select stages"]

    assert summary["count"] == 3
    assert summary["last_ms"] == 1.0
    assert summary["failures"] == {"not_found": 1}


def test_metric_key_restores_path_placeholders() -> None:
    request = Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/v1/waiting-list/wl-7/offer",
            "path_params": {"entry_id": "wl-7"},
            "headers": [],
            "query_string": b"",
        }
    )
    entity_request = Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/v1/stages/stage-3",
            "path_params": {"entity": "stages", "record_id": "stage-3"},
            "headers": [],
            "query_string": b"",
        }
    )

    assert metric_key(request) == "POST /v1/waiting-list/{entry_id}/offer"
    assert metric_key(entity_request) == "GET /v1/stages/{record_id}"
