# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nim_proxy.errors import InvalidRequestError, NotFoundError, ProxyError, UpstreamError
from nim_proxy.utils.logger import logger

"""
Exception handlers for the FastAPI applications.
Every error leaves the proxy in the same {"error": {...}} envelope.
"""


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """
    Renders ProxyError subclasses (configuration, upstream, not found).

    Args:
        request (Request): The incoming HTTP request.
        exc (ProxyError): The raised error.

    Returns:
        JSONResponse: The error envelope with the error's own status code.
    """
    if isinstance(exc, UpstreamError):
        logger.error(f"Proxy error: {exc.message} (status {exc.status_code})")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())


async def route_not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handles unmatched routes and methods. Unsupported methods on known paths are
    reported as 404 as well, the same as unknown paths.

    Args:
        request (Request): The incoming HTTP request.
        exc (StarletteHTTPException): The routing exception raised by Starlette.

    Returns:
        JSONResponse: A 404 envelope, or the envelope for any other HTTP status.
    """
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        error: ProxyError = NotFoundError(
            f"Endpoint {request.url.path} not found. Use /v1/chat/completions for chat."
        )
    else:
        error = ProxyError(str(exc.detail), status_code=exc.status_code, error_type="invalid_request_error")
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handles malformed caller bodies (missing messages, wrong field types, non-JSON).

    Args:
        request (Request): The incoming HTTP request.
        exc (RequestValidationError): The validation failure raised by FastAPI.

    Returns:
        JSONResponse: A 400 invalid_request_error envelope.
    """
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    logger.warning(f"Rejected request to {request.url.path}: {problems}")
    error = InvalidRequestError(f"Invalid request body: {problems}")
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last resort for failures no other handler claims; rendered as a 500 api_error.
    """
    logger.exception(f"Unhandled error on {request.url.path}: {exc!r}")
    error = ProxyError(str(exc) or type(exc).__name__)
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers all exception handlers with the FastAPI app.

    Args:
        app (FastAPI): The FastAPI application instance.

    Returns:
        None
    """
    app.add_exception_handler(ProxyError, proxy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, route_not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
