# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from typing import Any, Optional

from nim_proxy.schemas import ErrorDetail, ErrorEnvelope


class ProxyError(Exception):
    """
    Base error rendered to callers as {"error": {"message", "type", "code"}}.
    """

    status_code: int = 500
    error_type: str = "api_error"

    def __init__(self, message: str, status_code: Optional[int] = None, error_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_type is not None:
            self.error_type = error_type

    def to_envelope(self) -> dict[str, Any]:
        return ErrorEnvelope(
            error=ErrorDetail(message=self.message, type=self.error_type, code=self.status_code)
        ).model_dump()


class ConfigurationError(ProxyError):
    """Raised before any upstream call when the proxy itself is misconfigured."""

    status_code = 500
    error_type = "configuration_error"


class UpstreamError(ProxyError):
    """Non-2xx answer, transport failure or timeout from the upstream API."""

    status_code = 500
    error_type = "api_error"


class NotFoundError(ProxyError):
    status_code = 404
    error_type = "invalid_request_error"


class InvalidRequestError(ProxyError):
    status_code = 400
    error_type = "invalid_request_error"


def extract_upstream_message(payload: Any, status_code: int) -> str:
    """
    Pulls a human readable message out of an upstream error body.

    Args:
        payload (Any): The decoded upstream body (dict for JSON, str otherwise, None if empty).
        status_code (int): The upstream HTTP status.

    Returns:
        str: `error.message`, a top level `message`, or a generic status line.
    """
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if payload.get("message"):
            return str(payload["message"])
    return f"Upstream request failed with status code {status_code}"
