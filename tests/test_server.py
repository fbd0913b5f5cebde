"""HTTP-level tests for the FastAPI routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from server import app, get_gateway
from tests._fakes import GROUPED_OUTPUT, FakeGateway

TAG_BODY = {"topic": "Photosynthesis for class 10", "intent": "Learn", "persona": "Students", "stage": 1}


@pytest.fixture
def make_client():
    def _make(gateway: FakeGateway) -> TestClient:
        app.dependency_overrides[get_gateway] = lambda: gateway
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_health_reports_configuration(make_client) -> None:
    client = make_client(FakeGateway([{}], configured=False))
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "gemini_configured": False}


def test_generate_tags_success(make_client) -> None:
    client = make_client(FakeGateway([GROUPED_OUTPUT]))
    response = client.post("/api/tags/generate", json=TAG_BODY)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["fallback"] is False
    assert len(data["tags"]) <= 3
    for tag in data["tags"]:
        assert 3 <= len(tag.split()) <= 4
        assert tag.strip(".,!?;:") == tag
    assert "message" not in data


def test_generate_tags_missing_field_is_400(make_client) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT])
    client = make_client(gateway)
    response = client.post("/api/tags/generate", json={"topic": "Photosynthesis", "intent": "Learn"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert gateway.calls == []


def test_generate_tags_without_credential_is_a_200_fallback(make_client) -> None:
    client = make_client(FakeGateway([GROUPED_OUTPUT], configured=False))
    response = client.post("/api/tags/generate", json=TAG_BODY)

    assert response.status_code == 200
    data = response.json()
    assert data["fallback"] is True
    assert data["success"] is False
    assert len(data["tags"]) == 3
    assert "groups" not in data


def test_generate_tags_upstream_failure_is_a_200_fallback(make_client) -> None:
    client = make_client(FakeGateway([RuntimeError("boom")]))
    response = client.post("/api/tags/generate", json={**TAG_BODY, "stage": 2})

    assert response.status_code == 200
    assert response.json()["fallback"] is True
    assert len(response.json()["tags"]) == 5


def test_analyze_empty_prompt_is_400(make_client) -> None:
    client = make_client(FakeGateway([{}]))
    response = client.post("/api/gemini/analyze", json={"studentPrompt": ""})

    assert response.status_code == 400
    assert response.json() == {"error": "studentPrompt is required"}


def test_analyze_missing_body_field_is_400(make_client) -> None:
    client = make_client(FakeGateway([{}]))
    response = client.post("/api/gemini/analyze", json={})

    assert response.status_code == 400


def test_analyze_success_fills_optional_fields(make_client) -> None:
    client = make_client(FakeGateway([{"score": 55, "feedback": "Good start.", "improvedPrompt": {}}]))
    response = client.post("/api/gemini/analyze", json={"studentPrompt": "Explain photosynthesis."})

    assert response.status_code == 200
    data = response.json()
    assert data["score"] == 55
    assert data["improvedPrompt"]["task"] == "Explain photosynthesis."
    assert data["improvedPrompt"]["role"] is None


def test_analyze_without_credential_is_500(make_client) -> None:
    from betterask.llm_client import GatewayNotConfiguredError

    client = make_client(FakeGateway([GatewayNotConfiguredError("Gemini API not configured")]))
    response = client.post("/api/gemini/analyze", json={"studentPrompt": "Explain photosynthesis."})

    assert response.status_code == 500
    assert "error" in response.json()


def test_analyze_rate_limit_is_429(make_client) -> None:
    from betterask.llm_client import GatewayError

    client = make_client(FakeGateway([GatewayError("429 RESOURCE_EXHAUSTED")]))
    response = client.post("/api/gemini/analyze", json={"studentPrompt": "Explain photosynthesis."})

    assert response.status_code == 429
    assert response.json()["details"] == "429 RESOURCE_EXHAUSTED"


def test_analyze_error_statuses_are_documented(make_client) -> None:
    client = make_client(FakeGateway([{}]))
    schema = client.get("/openapi.json").json()

    responses = schema["paths"]["/api/gemini/analyze"]["post"]["responses"]
    for status in ("400", "401", "403", "429", "500", "503"):
        ref = responses[status]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/ErrorResponse")
