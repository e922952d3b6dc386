"""
Default exception handler for HTTP API servers.

Registers the handlers every API needs (unexpected errors, status
exceptions, timeouts, bodyless error statuses) and formats all of them as
`ApiError` payloads.
"""

import asyncio
from http import HTTPStatus
from typing import Optional

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException

from error_responses.context import CallContext
from error_responses.core.config import Settings, get_settings
from error_responses.core.exceptions import ResponseStatusException
from error_responses.core.logging import get_logger, log_error
from error_responses.core.schemas import ApiError
from error_responses.registry import Configuration

logger = get_logger(__name__)


def status_phrase(status: int) -> str:
    """Reason phrase of a status code, empty for non-standard codes."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def exception_type_name(exc: BaseException) -> str:
    """Identifier of an exception's class as reported in error payloads."""
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class DefaultExceptionHandler:
    """
    Base exception handler for HTTP API servers.

    Usage:
        install(app, lambda config: config.handler(
            DefaultExceptionHandler,
            lambda handler: handler.register(OrderNotFound, 404),
        ))

    Subclass and override `handle_known`, `handle_unknown` or
    `intercept_error_response` to change the payloads.
    """

    def __init__(self, config: Configuration, settings: Optional[Settings] = None) -> None:
        self.config = config
        self.settings = settings or config.settings or get_settings()

        config.exception(Exception, self.handle_unknown)

        # Generic status exception
        config.exception(ResponseStatusException, self._handle_status_exception)

        # Failures the framework raises for routing and request parsing
        config.exception(HTTPException, self._handle_http_exception)
        config.exception(RequestValidationError, self._handle_request_validation)

        error_statuses = [s.value for s in HTTPStatus if s.value >= self.settings.error_status_threshold]
        config.status(*error_statuses, handler=self.intercept_error_response)

        # Request bodies that cannot be decoded are the client's fault
        self.register_receive(ValidationError, HTTPStatus.BAD_REQUEST)

        # No timeout should go unhandled, report it as a server error
        self.register(TimeoutError, HTTPStatus.INTERNAL_SERVER_ERROR)
        self.register(asyncio.TimeoutError, HTTPStatus.INTERNAL_SERVER_ERROR)

    def register(self, exc_class: type, status: int) -> None:
        """Map `exc_class` raised in any stage to `status`."""
        self.config.exception(exc_class, self._known(status))

    def register_receive(self, exc_class: type, status: int) -> None:
        """Map `exc_class` raised while receiving the request body to `status`."""
        self.config.receive_exception(exc_class, self._known(status))

    def register_send(self, exc_class: type, status: int) -> None:
        """Map `exc_class` raised while sending the response to `status`."""
        self.config.send_exception(exc_class, self._known(status))

    def _known(self, status: int):
        status = int(status)

        async def handle(ctx: CallContext, exc: Exception) -> None:
            await self.handle_known(ctx, exc, status)

        return handle

    async def _handle_status_exception(self, ctx: CallContext, exc: ResponseStatusException) -> None:
        await self.handle_known(ctx, exc, int(exc.status))

    async def _handle_http_exception(self, ctx: CallContext, exc: HTTPException) -> None:
        await self.handle_known(ctx, exc, exc.status_code, detail=str(exc.detail), headers=exc.headers)

    async def _handle_request_validation(self, ctx: CallContext, exc: RequestValidationError) -> None:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        await self.handle_known(ctx, exc, HTTPStatus.UNPROCESSABLE_ENTITY.value, detail=detail)

    def build_error(self, ctx: CallContext, status: int, type_: str, detail: str) -> ApiError:
        """Format the error payload for the current call."""
        return ApiError(
            status=status,
            type=type_,
            title=status_phrase(status),
            detail=detail,
            instance=ctx.instance,
            path=ctx.path,
        )

    async def handle_known(
        self,
        ctx: CallContext,
        cause: Exception,
        status: int,
        detail: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Handle an error for which a status code was registered beforehand."""
        if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            log_error(logger, cause, "error_response", status=status, path=ctx.path)
        elif status >= HTTPStatus.BAD_REQUEST:
            logger.info(
                "error_response",
                status=status,
                path=ctx.path,
                error=str(cause),
                error_type=type(cause).__name__,
            )
        else:
            logger.debug("error_response", status=status, path=ctx.path, error_type=type(cause).__name__)

        error = self.build_error(
            ctx,
            status,
            exception_type_name(cause),
            detail if detail is not None else str(cause),
        )
        await ctx.respond(status, error, headers)

    async def handle_unknown(self, ctx: CallContext, cause: Exception) -> None:
        """Handle an error which was not registered beforehand."""
        log_error(logger, cause, "Unexpected error", path=ctx.path)

        status = HTTPStatus.INTERNAL_SERVER_ERROR.value
        error = self.build_error(
            ctx,
            status,
            self.settings.unexpected_error_type,
            self.settings.unexpected_error_detail,
        )
        await ctx.respond(status, error)

    async def intercept_error_response(self, ctx: CallContext, status: int) -> None:
        """Give error responses sent without a body, not raised as exceptions, a payload."""
        if ctx.response_has_body:
            return

        error = self.build_error(
            ctx,
            status,
            f"Generic {status}",
            f"{status} {status_phrase(status)}".rstrip(),
        )
        await ctx.respond(status, error)
