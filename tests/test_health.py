"""
Tests for the health, status and metrics endpoints.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from k8s_eagle.modules.health import build_health_server, create_health_app


def fake_supervisor(entries, all_terminated=False):
    supervisor = MagicMock()
    supervisor.status.return_value = entries
    supervisor.all_terminated = all_terminated
    return supervisor


def entry(name, state="streaming", restarts=0, events=0):
    return {
        "name": name,
        "state": state,
        "restarts": restarts,
        "events_processed": events,
        "last_error": None,
    }


@pytest.fixture
def client():
    supervisor = fake_supervisor([entry("api-deploy", events=3), entry("web", state="terminated", restarts=2)])
    dispatcher = MagicMock(pending=4)
    return TestClient(create_health_app(supervisor, dispatcher))


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_status_running(client):
    response = client.get("/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "running"
    assert [w["name"] for w in body["watchers"]] == ["api-deploy", "web"]


def test_status_all_terminated():
    supervisor = fake_supervisor([entry("api-deploy", state="terminated")], all_terminated=True)
    client = TestClient(create_health_app(supervisor))

    response = client.get("/status")

    assert response.status_code == 503
    assert response.json()["status"] == "terminated"


def test_metrics(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    text = response.text
    assert 'k8s_eagle_events_processed_total{watcher="api-deploy"} 3' in text
    assert 'k8s_eagle_watcher_restarts_total{watcher="web"} 2' in text
    assert 'k8s_eagle_watcher_up{watcher="api-deploy"} 1' in text
    assert 'k8s_eagle_watcher_up{watcher="web"} 0' in text
    assert "k8s_eagle_pending_deliveries 4" in text


def test_metrics_without_dispatcher():
    client = TestClient(create_health_app(fake_supervisor([entry("api-deploy")])))

    response = client.get("/metrics")

    assert "k8s_eagle_pending_deliveries" not in response.text


def test_metrics_escape_label_values():
    client = TestClient(create_health_app(fake_supervisor([entry('odd"name\\x', events=1)])))

    response = client.get("/metrics")

    assert 'k8s_eagle_events_processed_total{watcher="odd\\"name\\\\x"} 1' in response.text
    assert 'watcher="odd"name' not in response.text


def test_build_health_server():
    app = create_health_app(fake_supervisor([]))

    server = build_health_server(app, port=8081)

    assert server.config.port == 8081
    assert server.config.host == "0.0.0.0"
