# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

import asyncio

import uvicorn

from nim_proxy.config import get_settings
from nim_proxy.routing import DEFAULT_UPSTREAM_MODEL
from nim_proxy.server import admin_app, app
from nim_proxy.utils.logger import logger


async def serve() -> None:
    """
    Runs the proxy and the control panel side by side in one event loop.
    Both apps share the module-level config store.
    """
    settings = get_settings()
    proxy_server = uvicorn.Server(
        uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    )
    admin_server = uvicorn.Server(
        uvicorn.Config(
            admin_app, host=settings.HOST, port=settings.CONTROL_PANEL_PORT, log_level=settings.LOG_LEVEL.lower()
        )
    )

    logger.info(f"Proxy listening on port {settings.PORT}")
    logger.info(f"Health check: http://localhost:{settings.PORT}/health")
    logger.info(f"Model: {DEFAULT_UPSTREAM_MODEL}")
    logger.info(f"API Key: {'configured' if settings.api_key_configured else 'NOT SET'}")
    logger.info(f"Control Panel: http://localhost:{settings.CONTROL_PANEL_PORT}/config")

    await asyncio.gather(proxy_server.serve(), admin_server.serve())


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
