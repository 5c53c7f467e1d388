from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from nestconf.options import AppOptions, AuthenticationOptions, ModelOptions
from nestconf.serving import create_app


@pytest.fixture()
def options() -> AppOptions:
    return AppOptions(
        authentication=AuthenticationOptions(method="api_key", api_key="sk-test-abcdef")
    )


@pytest.fixture()
def client(options: AppOptions) -> TestClient:
    return TestClient(create_app(lambda: options))


def test_get_configuration_masks_secrets(client: TestClient) -> None:
    response = client.get("/api/configuration")

    assert response.status_code == 200
    payload = response.json()
    assert payload["authentication"]["method"] == "api_key"
    assert payload["authentication"]["api_key"] == "***masked***"
    assert payload["model"]["temperature"] == 0.7


def test_get_section_is_case_insensitive(client: TestClient) -> None:
    response = client.get("/api/configuration/section/Model")

    assert response.status_code == 200
    assert response.json()["name"] == "gemini-2.0-flash-exp"


def test_get_unknown_section(client: TestClient) -> None:
    response = client.get("/api/configuration/section/plugins")

    assert response.status_code == 404
    assert response.json()["detail"] == "Configuration section 'plugins' not found"


def test_metadata(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NESTCONF_ENVIRONMENT", "staging")

    payload = client.get("/api/configuration/metadata").json()

    assert payload["configuration_sections"] == [
        "model",
        "authentication",
        "ui",
        "tools",
        "logging",
    ]
    assert payload["authentication_methods"] == ["oauth", "api_key", "vertex_ai"]
    assert payload["current_environment"] == "staging"


def test_validation_of_current_configuration() -> None:
    broken = AppOptions(model=ModelOptions(temperature=2.5))
    client = TestClient(create_app(lambda: broken))

    payload = client.get("/api/configuration/validation").json()

    assert payload["succeeded"] is False
    assert [item["path"] for item in payload["violations"]] == ["model.temperature"]


def test_test_validation_accepts_valid_payload(client: TestClient) -> None:
    response = client.post(
        "/api/configuration/test-validation",
        json={"model": {"name": "gpt-4-turbo", "temperature": 1.0}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Validation passed"
    assert body["model"]["model"]["name"] == "gpt-4-turbo"
    assert body["model"]["ui"]["theme"] == "default"


def test_test_validation_reports_constraint_violations(client: TestClient) -> None:
    response = client.post(
        "/api/configuration/test-validation",
        json={"model": {"name": "", "temperature": 3.0}, "ui": {"max_display_messages": 5}},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert [item["path"] for item in body["violations"]] == [
        "model.name",
        "model.temperature",
        "ui.max_display_messages",
    ]
    assert body["errors"].startswith("model.name: The name field is required.; ")


def test_test_validation_reports_binding_errors(client: TestClient) -> None:
    response = client.post(
        "/api/configuration/test-validation",
        json={"model": {"temperature": "warm"}},
    )

    assert response.status_code == 400
    violations = response.json()["violations"]
    assert violations[0]["path"] == "model.temperature"
    assert violations[0]["kind"] == "binding_error"


def test_section_test_validation(client: TestClient) -> None:
    ok = client.post(
        "/api/configuration/section/tools/test-validation",
        json={"default_timeout_ms": 5000},
    )
    bad = client.post(
        "/api/configuration/section/tools/test-validation",
        json={"default_timeout_ms": 10},
    )
    missing = client.post("/api/configuration/section/plugins/test-validation", json={})

    assert ok.status_code == 200
    assert bad.status_code == 400
    assert bad.json()["violations"][0]["path"] == "default_timeout_ms"
    assert missing.status_code == 404
