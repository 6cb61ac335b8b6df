"""
Request Context Middleware.

Pure ASGI middleware (no BaseHTTPMiddleware) so streamed bodies pass
through untouched. For each HTTP request it:
    - assigns a 12-char request id and stores it for log correlation
    - echoes the id in the X-Request-Id response header
    - logs method, path, status and time-to-headers
"""
from __future__ import annotations

import time
import uuid

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tts_proxy.core.logging import get_logger, info, set_request_id, warn

_LOG = get_logger("tts-proxy.http")

REQUEST_ID_HEADER = "X-Request-Id"


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestContextMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = new_request_id()
        set_request_id(rid)
        started = time.perf_counter()

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).append(REQUEST_ID_HEADER, rid)
                status = message["status"]
                log = warn if status >= 400 else info
                log(_LOG, "request", method=scope["method"], path=scope["path"], status=status,
                    seconds=round(time.perf_counter() - started, 4))
            await send(message)

        await self.app(scope, receive, send_with_request_id)
