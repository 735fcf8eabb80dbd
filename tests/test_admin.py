# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from fastapi.testclient import TestClient
from nim_proxy.server import config_store


def test_get_config(admin_client: TestClient) -> None:
    response = admin_client.get("/config")
    assert response.status_code == 200
    assert response.json() == {
        "showReasoning": False,
        "enableThinking": False,
        "logRequests": True,
        "maxTokens": 4096,
        "temperature": 0.7,
        "streamingEnabled": True,
    }


def test_post_config_partial_update(admin_client: TestClient) -> None:
    response = admin_client.post("/config", json={"showReasoning": True, "maxTokens": 8192})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["config"]["showReasoning"] is True
    assert data["config"]["maxTokens"] == 8192
    assert data["config"]["temperature"] == 0.7
    assert config_store.current.show_reasoning is True


def test_post_config_invalid_temperature_is_ignored(admin_client: TestClient) -> None:
    before = admin_client.get("/config").json()

    response = admin_client.post("/config", json={"temperature": 1.5})

    assert response.status_code == 200
    assert response.json() == {"success": True, "config": before}


def test_post_config_mixed_valid_and_invalid(admin_client: TestClient) -> None:
    response = admin_client.post(
        "/config", json={"temperature": 0.3, "maxTokens": -1, "logRequests": "no", "unknown": 1}
    )

    config = response.json()["config"]
    assert config["temperature"] == 0.3
    assert config["maxTokens"] == 4096
    assert config["logRequests"] is True
    assert "unknown" not in config


def test_post_config_non_object_body(admin_client: TestClient) -> None:
    response = admin_client.post("/config", json=[1, 2, 3])
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_admin_change_visible_to_proxy(admin_client: TestClient, client: TestClient) -> None:
    admin_client.post("/config", json={"enableThinking": True})
    assert client.get("/health").json()["config"]["enableThinking"] is True


def test_admin_unknown_path(admin_client: TestClient) -> None:
    response = admin_client.get("/v1/models")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == 404
