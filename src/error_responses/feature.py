"""
Error responses feature.

Holds the handler tables built from a `Configuration` and implements the
stage guards. Exceptions raised while receiving or sending are only
recorded where they happen; they are converted in the call stage so that a
request gets at most one error response, written from a single place.
"""

from types import MappingProxyType
from typing import Awaitable, Callable, Optional, TypeVar

from fastapi.exceptions import RequestValidationError
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import Response

from error_responses.context import CallContext, StageFailure
from error_responses.core.config import Settings, get_settings
from error_responses.core.exceptions import CallIdMissingError
from error_responses.core.logging import get_logger
from error_responses.registry import Configuration, HandlerTable, Stage, StatusHandler

logger = get_logger(__name__)

T = TypeVar("T")


class ErrorResponses:
    """Installed error responses feature, read-only once created."""

    def __init__(self, config: Configuration, settings: Optional[Settings] = None) -> None:
        self.settings = settings or config.settings or get_settings()
        self.call_exceptions = HandlerTable(Stage.CALL, config.call_exceptions)
        self.receive_exceptions = HandlerTable(
            Stage.RECEIVE, config.call_exceptions, config.receive_exceptions
        )
        self.send_exceptions = HandlerTable(
            Stage.SEND, config.call_exceptions, config.send_exceptions
        )
        self.statuses: MappingProxyType[int, StatusHandler] = MappingProxyType(dict(config.statuses))

    async def intercept_receive(self, ctx: CallContext, proceed: Callable[[], Awaitable[T]]) -> T:
        """Guard a request reading step, recording failures for the call stage."""
        return await self._guard_stage(ctx, self.receive_exceptions, proceed)

    async def intercept_send(self, ctx: CallContext, proceed: Callable[[], Awaitable[T]]) -> T:
        """Guard a response writing step, recording failures for the call stage."""
        return await self._guard_stage(ctx, self.send_exceptions, proceed)

    async def _guard_stage(
        self,
        ctx: CallContext,
        handlers: HandlerTable,
        proceed: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await proceed()
        except Exception as e:
            # Handlers must run in the call stage, where the whole response can be written
            handler = handlers.find(type(e))
            if handler is not None:
                ctx.failure = StageFailure(error=e, handler=handler, stage=handlers.stage)
            raise

    async def intercept_call(self, ctx: CallContext, proceed: Callable[[], Awaitable[None]]) -> None:
        """
        Run the application for one call and convert the exceptions it raises.

        Raises:
            Exception: The original exception when no handler matches or the
                response was already started
        """
        try:
            await proceed()
        except Exception as e:
            failure = ctx.take_failure(e)
            if failure is not None:
                handler = failure.handler
                stage = failure.stage
            else:
                handler = self.call_exceptions.find(type(e))
                stage = Stage.CALL

            if handler is None or ctx.status is not None:
                logger.debug(
                    "error_response_skipped",
                    path=ctx.path,
                    stage=stage.value,
                    error_type=type(e).__name__,
                    handler_found=handler is not None,
                    response_status=ctx.status,
                )
                raise

            ctx.pending_start = None
            ctx.converted = True
            await handler(ctx, e)
            ctx.finish_if_response_sent()

    async def intercept_status(self, ctx: CallContext, status: int) -> None:
        """Run the status handler for a response the application sent."""
        handler = self.statuses.get(status)
        if handler is None or ctx.converted:
            return
        ctx.converted = True
        await handler(ctx, status)
        ctx.finish_if_response_sent()


async def _reraise(request: Request, exc: Exception) -> Response:
    raise exc


def install(
    app: Starlette,
    configure: Optional[Callable[[Configuration], None]] = None,
    settings: Optional[Settings] = None,
) -> ErrorResponses:
    """
    Install error responses on a Starlette or FastAPI application.

    The request id middleware must be added first; the error responses
    middleware is placed directly inside it so every call has a request id.
    `HTTPException` and `RequestValidationError` raised by routes are passed
    on to the middleware when a handler is registered for them, instead of
    getting the framework's own response.

    Args:
        app: Application to install on
        configure: Callback registering handlers on the configuration
        settings: Settings overriding the cached defaults, shared with the
            handler bundles created from the configuration

    Returns:
        The installed feature

    Raises:
        CallIdMissingError: If RequestIdMiddleware is not installed
        RuntimeError: If the application has already started
    """
    from error_responses.middleware.error_responses import ErrorResponsesMiddleware
    from error_responses.middleware.request_id import RequestIdMiddleware

    position = next(
        (i for i, m in enumerate(app.user_middleware) if m.cls is RequestIdMiddleware),
        None,
    )
    if position is None:
        raise CallIdMissingError("ErrorResponses requires RequestIdMiddleware to be installed")
    if app.middleware_stack is not None:
        raise RuntimeError("Cannot install error responses after an application has started")

    config = Configuration(settings or get_settings())
    if configure is not None:
        configure(config)
    feature = ErrorResponses(config)

    # Later entries in user_middleware run closer to the routes
    app.user_middleware.insert(position + 1, Middleware(ErrorResponsesMiddleware, feature=feature))

    # The framework answers these itself before they reach the middleware
    for exc_class in (HTTPException, RequestValidationError):
        if feature.call_exceptions.find(exc_class) is not None:
            app.add_exception_handler(exc_class, _reraise)

    logger.info(
        "error_responses_installed",
        call_handlers=len(feature.call_exceptions),
        receive_handlers=len(feature.receive_exceptions),
        send_handlers=len(feature.send_exceptions),
        status_handlers=len(feature.statuses),
    )
    return feature
