"""
Request id middleware.

Provides the per-request id that error responses report as the error
`instance`. The id is taken from the incoming request header when present,
generated otherwise, and logged with every entry of the request.
"""

import time
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from error_responses.core.config import Settings, get_settings
from error_responses.core.logging import bind_context, get_logger, unbind_context

logger = get_logger(__name__)

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_var.get()


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:16]}"


class RequestIdMiddleware:
    """
    Middleware assigning a request id to every HTTP request.

    - Reuses the request id header if the client sent a non-blank one
    - Makes the id available via `get_request_id()` and the log context
    - Echoes the id in the response headers
    """

    def __init__(self, app: ASGIApp, settings: Optional[Settings] = None) -> None:
        self.app = app
        self.settings = settings or get_settings()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        header = self.settings.request_id_header
        request_id = Headers(scope=scope).get(header, "").strip() or generate_request_id()

        token = request_id_var.set(request_id)
        bind_context(request_id=request_id)
        start_time = time.time()
        status_code: Optional[int] = None

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(scope=message)
                headers[header] = request_id
            await send(message)

        logger.info(
            "Incoming request",
            method=scope.get("method"),
            path=scope.get("path"),
        )
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            logger.info(
                "Request completed",
                method=scope.get("method"),
                path=scope.get("path"),
                status_code=status_code,
                process_time=time.time() - start_time,
            )
            unbind_context("request_id")
            request_id_var.reset(token)
