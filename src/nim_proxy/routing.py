# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from types import MappingProxyType
from typing import Mapping, Optional

DEFAULT_UPSTREAM_MODEL = "deepseek-ai/deepseek-v3.2"

# Caller-facing model ids accepted on /v1/chat/completions and listed on /v1/models.
MODEL_MAPPING: Mapping[str, str] = MappingProxyType(
    {
        "gpt-4o": DEFAULT_UPSTREAM_MODEL,
        "gpt-4": DEFAULT_UPSTREAM_MODEL,
        "gpt-4-turbo": DEFAULT_UPSTREAM_MODEL,
        "deepseek-chat": DEFAULT_UPSTREAM_MODEL,
        "deepseek-v3.2": DEFAULT_UPSTREAM_MODEL,
    }
)


def resolve_upstream_model(model: Optional[str]) -> str:
    """
    Resolves the upstream model identifier for a caller-supplied model name.

    Lookup is exact and case-sensitive. Unknown or missing names fall back to the
    default upstream model, so resolution never fails.

    Args:
        model (Optional[str]): The model identifier sent by the caller (e.g., 'gpt-4o').

    Returns:
        str: The upstream model identifier (e.g., 'deepseek-ai/deepseek-v3.2').
    """
    if not isinstance(model, str):
        return DEFAULT_UPSTREAM_MODEL
    return MODEL_MAPPING.get(model, DEFAULT_UPSTREAM_MODEL)
