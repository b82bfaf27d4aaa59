"""Tests for the admin API endpoints."""

import pytest
from fastapi.testclient import TestClient

from virtual_router.api import create_app


@pytest.fixture
def client(work_build_router):
    return TestClient(create_app(work_build_router))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "virtual_models": 1}


def test_models_lists_targets(client):
    data = client.get("/models").json()

    assert data["models"]["virtual/work-build"] == {
        "strategy": "sequential",
        "strategy_profile": "build",
        "targets": ["anthropic/claude-sonnet-4", "openai/gpt-4.1"],
    }
    assert data["warnings"] == []


def test_resolve(client):
    response = client.post("/resolve", json={"model": "work-build"})

    assert response.status_code == 200
    body = response.json()
    assert body["provider_id"] == "anthropic"
    assert body["model_id"] == "claude-sonnet-4"
    assert body["candidates"] == ["anthropic/claude-sonnet-4", "openai/gpt-4.1"]


def test_resolve_unknown_model_is_404(client):
    assert client.post("/resolve", json={"model": "ghost"}).status_code == 404


def test_resolve_with_everything_cooled_is_503(client, work_build_router):
    for key in ("anthropic/claude-sonnet-4", "openai/gpt-4.1"):
        work_build_router.cooldowns.set_cooldown(key, "1m")

    response = client.post("/resolve", json={"model": "work-build"})

    assert response.status_code == 503
    assert response.json()["detail"] == "no viable target"


def test_session_failure_flow(client):
    first = client.post("/sessions/s1/dispatch", json={"model": "work-build"}).json()
    assert first["key"] == "anthropic/claude-sonnet-4"

    step = client.post("/sessions/s1/failure", json={"status_code": 503}).json()
    assert step["advanced"] is True
    assert step["exhausted"] is False
    assert step["failed"] == "anthropic/claude-sonnet-4"
    assert step["next"]["key"] == "openai/gpt-4.1"
    assert step["next"]["index"] == 1

    assert "anthropic/claude-sonnet-4" in client.get("/cooldowns").json()

    other = client.post("/sessions/s2/dispatch", json={"model": "work-build"}).json()
    assert other["key"] == "openai/gpt-4.1"

    last = client.post("/sessions/s1/failure", json={"status_code": 503}).json()
    assert last["exhausted"] is True
    assert last["next"] is None


def test_failure_not_matching_trigger_does_not_advance(client):
    client.post("/sessions/s1/dispatch", json={"model": "work-build"})

    step = client.post("/sessions/s1/failure", json={"status_code": 400}).json()

    assert step["advanced"] is False
    assert step["next"]["key"] == "anthropic/claude-sonnet-4"


def test_dispatch_unknown_model_is_404(client):
    assert client.post("/sessions/s1/dispatch", json={"model": "ghost"}).status_code == 404


def test_metrics_and_events_after_failure(client):
    client.post("/sessions/s1/dispatch", json={"model": "work-build"})
    client.post("/sessions/s1/failure", json={"error_name": "ProviderAuthError"})

    metrics = client.get("/metrics").json()
    assert metrics["anthropic/claude-sonnet-4"]["fallbacks"] == 1

    events = client.get("/events", params={"limit": 1}).json()
    assert events[0]["type"] == "fallback"
    assert events[0]["to"] == "openai/gpt-4.1"
