# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from typing import Annotated

from fastapi import Depends, Request

from nim_proxy.runtime_config import ConfigStore
from nim_proxy.service import UpstreamClient


def get_config_store(request: Request) -> ConfigStore:
    """
    Dependency to retrieve the shared runtime config store from app state.
    """
    if not hasattr(request.app.state, "config_store"):
        raise RuntimeError("Config store is not initialized in app state")
    return request.app.state.config_store  # type: ignore[no-any-return]


def get_upstream_client(request: Request) -> UpstreamClient:
    """
    Dependency to retrieve the upstream client from app state.
    """
    if not hasattr(request.app.state, "upstream"):
        raise RuntimeError("Upstream client is not initialized in app state")
    return request.app.state.upstream  # type: ignore[no-any-return]


# Type aliases for use in endpoints

ConfigStoreDep = Annotated[ConfigStore, Depends(get_config_store)]
UpstreamDep = Annotated[UpstreamClient, Depends(get_upstream_client)]
