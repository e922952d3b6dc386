"""
Error responses middleware for Starlette and FastAPI.

Implemented as pure ASGI middleware: the receive and send channels of the
request have to be wrapped, which BaseHTTPMiddleware does not allow.
"""

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from error_responses.context import CALL_CONTEXT_KEY, CallContext
from error_responses.core.logging import get_logger
from error_responses.feature import ErrorResponses
from error_responses.middleware.request_id import get_request_id

logger = get_logger(__name__)


class ErrorResponsesMiddleware:
    """
    Middleware converting exceptions and bodyless error statuses into error responses.

    Added by `error_responses.install`, directly inside RequestIdMiddleware.
    Receive and send guards are only attached for stages with registered
    handlers. The call guard is attached whenever any exception handler is
    registered, since it converts the failures the other guards record.
    """

    def __init__(self, app: ASGIApp, feature: ErrorResponses) -> None:
        self.app = app
        self.feature = feature

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        feature = self.feature
        ctx = CallContext(scope, send, feature, call_id=get_request_id())
        scope[CALL_CONTEXT_KEY] = ctx

        async def guarded_receive() -> Message:
            return await ctx.receive(receive)

        async def guarded_send(message: Message) -> None:
            if ctx.finished:
                return
            if feature.send_exceptions:
                await ctx.send(lambda: self._forward(ctx, message))
            else:
                await self._forward(ctx, message)

        app_receive = guarded_receive if feature.receive_exceptions else receive

        if feature.call_exceptions or feature.receive_exceptions or feature.send_exceptions:
            await feature.intercept_call(ctx, lambda: self.app(scope, app_receive, guarded_send))
        else:
            await self.app(scope, app_receive, guarded_send)

    async def _forward(self, ctx: CallContext, message: Message) -> None:
        """Pass an application message on, holding back candidates for status handlers."""
        message_type = message["type"]

        if message_type == "http.response.start":
            if not ctx.converted and message["status"] in self.feature.statuses:
                ctx.pending_start = message
                return
            await ctx.write(message)
            return

        if message_type == "http.response.body" and ctx.pending_start is not None:
            start = ctx.pending_start
            ctx.pending_start = None
            ctx.response_has_body = bool(message.get("body")) or message.get("more_body", False)

            await self.feature.intercept_status(ctx, start["status"])
            if ctx.finished:
                logger.debug("error_response_replaced_status", path=ctx.path, status=start["status"])
                return
            await ctx.write(start)

        await ctx.write(message)
