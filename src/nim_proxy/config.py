# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_NIM_API_BASE = "https://integrate.api.nvidia.com/v1"


class Settings(BaseSettings):
    """
    Process settings loaded from environment variables (and an optional .env file).

    Attributes:
        LOG_LEVEL (str): The logging level (default: INFO).
        NIM_API_KEY (SecretStr | None): Bearer credential for the upstream NIM API.
        NIM_API_BASE (str): Base URL of the upstream OpenAI-compatible API.
        HOST (str): Interface both listeners bind to.
        PORT (int): Port of the chat completion proxy.
        CONTROL_PANEL_PORT (int): Port of the administrative config surface.
        UPSTREAM_TIMEOUT (float): Seconds allowed for a single upstream call, streaming included.
    """

    # Core
    LOG_LEVEL: str = "INFO"

    # Upstream
    NIM_API_KEY: SecretStr | None = None
    NIM_API_BASE: str = DEFAULT_NIM_API_BASE
    UPSTREAM_TIMEOUT: float = 120.0

    # Listeners
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CONTROL_PANEL_PORT: int = 3001

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore")

    @property
    def api_key_configured(self) -> bool:
        return self.NIM_API_KEY is not None and bool(self.NIM_API_KEY.get_secret_value())

    @property
    def chat_completions_url(self) -> str:
        return f"{self.NIM_API_BASE.rstrip('/')}/chat/completions"


# Settings are built on demand rather than at import time so that the credential
# check reflects the environment at request time (and tests can monkeypatch it).


def get_settings() -> Settings:
    return Settings()
