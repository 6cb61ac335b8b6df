"""
Error Boundary.

The single place where failures become HTTP responses. Every non-2xx
answer, including unmatched paths, wrong methods and malformed bodies,
is rendered as the standard envelope:

    {"error": {"code": 400, "message": "...", "details": ..., "stack": "..."}}

Logging:
    status < 500  -> warn  (client_error)
    status >= 500 -> error (server_error), with the ApiError context
    provider transport error after the response started -> warn (stream_aborted)

The stack field carries the formatted traceback whenever
server.environment is not "production".
"""
from __future__ import annotations

import traceback
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tts_proxy.core.errors import ApiError, error_envelope
from tts_proxy.core.logging import error, get_logger, warn

_LOG = get_logger("tts-proxy.errors")

NOT_FOUND_MESSAGE = "API endpoint not found"


def _include_stack(request: Request) -> bool:
    config = getattr(request.app.state, "config", None)
    return config is None or not config.server.is_production


def render_error(
    request: Request,
    exc: BaseException,
    status_code: int,
    message: str,
    details: Any = None,
    context: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Log a failure once and build its envelope response.

    Args:
        request: The failing request (for path and app config).
        exc: The exception being rendered.
        status_code: HTTP status to answer with.
        message: Client-facing message.
        details: Optional structured payload.
        context: Log-only fields.
    """
    fields = dict(context or {})
    if status_code >= 500:
        error(_LOG, "server_error", status=status_code, error_message=message,
              method=request.method, path=request.url.path, **fields)
    else:
        warn(_LOG, "client_error", status=status_code, error_message=message,
             method=request.method, path=request.url.path, **fields)

    return _envelope_response(request, exc, status_code, message, details)


def _envelope_response(request: Request, exc: BaseException, status_code: int,
                       message: str, details: Any = None) -> JSONResponse:
    body = error_envelope(status_code, message, details)
    if _include_stack(request):
        body["error"]["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return render_error(request, exc, exc.status_code, exc.message, exc.details, exc.context)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = NOT_FOUND_MESSAGE if exc.status_code == 404 else str(exc.detail)
    response = render_error(request, exc, exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return render_error(request, exc, 400, "invalid request body", jsonable_encoder(exc.errors()))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, httpx.HTTPError):
        # provider failures before the first byte arrive as ApiError; a raw
        # transport error here broke a stream whose 200 was already sent
        warn(_LOG, "stream_aborted", method=request.method, path=request.url.path,
             error=str(exc) or type(exc).__name__, error_type=type(exc).__name__)
        return _envelope_response(request, exc, 500, "internal server error")
    return render_error(request, exc, 500, "internal server error",
                        context={"error": str(exc), "error_type": type(exc).__name__})


def install_error_handlers(app: FastAPI) -> None:
    """Register the envelope handlers on an app."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
