# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nim_proxy.config import get_settings
from nim_proxy.exception_handlers import register_exception_handlers
from nim_proxy.routers import admin, chat
from nim_proxy.routing import DEFAULT_UPSTREAM_MODEL, MODEL_MAPPING
from nim_proxy.runtime_config import ConfigStore
from nim_proxy.schemas import ModelCard, ModelList
from nim_proxy.service import UpstreamClient
from nim_proxy.utils.logger import logger

SERVICE_NAME = "Lorebary DeepSeek V3.2 NVIDIA NIM Proxy"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info(f"Starting up {SERVICE_NAME}...")

    app.state.upstream = UpstreamClient(settings.chat_completions_url, timeout=settings.UPSTREAM_TIMEOUT)
    logger.info(f"Upstream client initialized for {settings.chat_completions_url}")
    if not settings.api_key_configured:
        logger.warning("NIM_API_KEY is not set; chat completions will be rejected")

    yield

    logger.info(f"Shutting down {SERVICE_NAME}...")
    try:
        await app.state.upstream.aclose()
        logger.info("Upstream client closed.")
    except Exception:
        logger.exception("Failed to close upstream client")


def _add_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app(store: ConfigStore) -> FastAPI:
    """
    Builds the caller-facing proxy application.

    Args:
        store (ConfigStore): The runtime config store shared with the admin app.

    Returns:
        FastAPI: The proxy application.
    """
    proxy = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    proxy.state.config_store = store
    _add_cors(proxy)
    register_exception_handlers(proxy)
    proxy.include_router(chat.router)

    @proxy.get("/")
    async def root() -> dict[str, Any]:
        return {
            "message": "Lorebary DeepSeek V3.2 Proxy",
            "endpoints": {
                "health": "/health",
                "models": "/v1/models",
                "chat": "/v1/chat/completions",
            },
        }

    @proxy.get("/health")
    async def health_check() -> dict[str, Any]:
        """
        Health check endpoint reporting credential presence and the live config.
        """
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "model": DEFAULT_UPSTREAM_MODEL,
            "api_key_configured": get_settings().api_key_configured,
            "config": store.current.to_public(),
        }

    @proxy.get("/v1/models", response_model=ModelList)
    async def list_models() -> ModelList:
        created = int(time.time())
        return ModelList(data=[ModelCard(id=name, created=created, root=name) for name in MODEL_MAPPING])

    return proxy


def create_admin_app(store: ConfigStore) -> FastAPI:
    """
    Builds the administrative application that reads and writes the runtime config.

    Args:
        store (ConfigStore): The runtime config store shared with the proxy app.

    Returns:
        FastAPI: The admin application.
    """
    control = FastAPI(title=f"{SERVICE_NAME} Control Panel")
    control.state.config_store = store
    _add_cors(control)
    register_exception_handlers(control)
    control.include_router(admin.router)
    return control


config_store = ConfigStore()
app = create_app(config_store)
admin_app = create_admin_app(config_store)

