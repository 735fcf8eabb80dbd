# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from nim_proxy.server import admin_app, app, config_store

NIM_API_BASE = "https://nim.test/v1"


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIM_API_KEY", "nvapi-test-key")
    monkeypatch.setenv("NIM_API_BASE", NIM_API_BASE)
    monkeypatch.setenv("UPSTREAM_TIMEOUT", "5")


@pytest.fixture(autouse=True)
def reset_config_store() -> Generator[None, None, None]:
    config_store.reset()
    yield
    config_store.reset()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Proxy client; entering the context runs the lifespan (upstream client setup).
    """
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client() -> Generator[TestClient, None, None]:
    with TestClient(admin_app) as c:
        yield c
