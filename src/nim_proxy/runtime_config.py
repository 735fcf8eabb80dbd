# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

import math
import threading
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from nim_proxy.utils.logger import logger

"""
Runtime behavior flags shared by the proxy and the admin surface.
Mutable without restart, never persisted.
"""


class RuntimeConfig(BaseModel):
    """
    Immutable snapshot of the tunable proxy behavior.
    Serialized with camelCase keys (showReasoning, maxTokens, ...).
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    show_reasoning: bool = Field(False, description="Merge reasoning text into content, wrapped in <think> tags.")
    enable_thinking: bool = Field(False, description="Ask upstream for reasoning traces.")
    log_requests: bool = Field(True, description="Log one summary line per request.")
    max_tokens: int = Field(4096, gt=0, description="Default max_tokens when the caller sends none.")
    temperature: float = Field(0.7, ge=0.0, le=1.0, description="Default temperature when the caller sends none.")
    streaming_enabled: bool = Field(True, description="Default stream flag when the caller sends none.")

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _is_number(value: Any) -> bool:
    # bool is an int subclass, JSON true/false must not count as numbers
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _coerce_bool(value: Any) -> Any:
    return value if isinstance(value, bool) else None


def _coerce_max_tokens(value: Any) -> Any:
    if _is_number(value) and value > 0 and float(value).is_integer():
        return int(value)
    return None


def _coerce_temperature(value: Any) -> Any:
    if _is_number(value) and 0 <= value <= 1:
        return float(value)
    return None


# camelCase field -> (attribute, validator). A validator returns None to reject.
_FIELD_RULES: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "showReasoning": ("show_reasoning", _coerce_bool),
    "enableThinking": ("enable_thinking", _coerce_bool),
    "logRequests": ("log_requests", _coerce_bool),
    "streamingEnabled": ("streaming_enabled", _coerce_bool),
    "maxTokens": ("max_tokens", _coerce_max_tokens),
    "temperature": ("temperature", _coerce_temperature),
}


class ConfigStore:
    """
    Owns the live RuntimeConfig.

    Readers take `current`, an immutable snapshot, so they never observe a half-applied
    update. Writers build a new snapshot and swap it in under a lock.
    """

    def __init__(self, initial: RuntimeConfig | None = None):
        self._lock = threading.Lock()
        self._config = initial or RuntimeConfig()

    @property
    def current(self) -> RuntimeConfig:
        return self._config

    def update(self, patch: Mapping[str, Any]) -> RuntimeConfig:
        """
        Applies a partial update. Each recognized field is validated on its own;
        unknown keys and invalid values are skipped without error.

        Args:
            patch (Mapping[str, Any]): camelCase keys as sent by the admin client.

        Returns:
            RuntimeConfig: The snapshot in effect after the update.
        """
        accepted: dict[str, Any] = {}
        for key, (attribute, coerce) in _FIELD_RULES.items():
            if key not in patch:
                continue
            value = coerce(patch[key])
            if value is None:
                logger.debug(f"Ignoring invalid value for {key}: {patch[key]!r}")
                continue
            accepted[attribute] = value

        with self._lock:
            if accepted:
                self._config = self._config.model_copy(update=accepted)
            config = self._config

        logger.info(f"Configuration updated: {config.to_public()}")
        return config

    def reset(self) -> RuntimeConfig:
        with self._lock:
            self._config = RuntimeConfig()
        return self._config
