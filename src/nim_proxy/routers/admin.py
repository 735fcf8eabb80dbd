# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from typing import Any

from fastapi import APIRouter, Body

from nim_proxy.dependencies import ConfigStoreDep
from nim_proxy.schemas import ConfigUpdateResponse

router = APIRouter()


@router.get("/config")
async def read_config(store: ConfigStoreDep) -> dict[str, Any]:
    """
    Returns the runtime config currently in effect.
    """
    return store.current.to_public()


@router.post("/config", response_model=ConfigUpdateResponse)
async def update_config(store: ConfigStoreDep, patch: Any = Body(None)) -> ConfigUpdateResponse:
    """
    Applies a partial runtime config update.

    Every recognized field is validated and applied on its own. Unknown fields,
    invalid values and non-object bodies are ignored rather than rejected.

    Args:
        store (ConfigStore): Injected runtime config store.
        patch (Any): The JSON body sent by the control panel.

    Returns:
        ConfigUpdateResponse: `{"success": true, "config": {...}}` with the resulting config.
    """
    config = store.update(patch if isinstance(patch, dict) else {})
    return ConfigUpdateResponse(success=True, config=config.to_public())
