# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

import sys
from pathlib import Path

from loguru import logger

from nim_proxy.config import get_settings

__all__ = ["logger"]

# Same source as the uvicorn listeners: environment first, then .env
LOG_LEVEL = get_settings().LOG_LEVEL.upper()

# Reset default handler so the level and format are ours
logger.remove()

logger.add(
    sys.stderr,
    level=LOG_LEVEL,
    format=(
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    ),
)

log_path = Path("logs")
if not log_path.exists():
    log_path.mkdir(parents=True, exist_ok=True)

logger.add(
    "logs/nim_proxy.log",
    level=LOG_LEVEL,
    rotation="10 MB",
    retention="7 days",
    serialize=True,
    enqueue=True,
)
