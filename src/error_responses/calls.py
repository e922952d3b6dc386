"""
Request body decoding and response serialization for endpoints.

Endpoints that decode bodies and serialize responses through these helpers
get receive and send stage specific error handling for those failures.
Without the middleware installed the helpers behave the same, unguarded.
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import TypeAdapter
from starlette.requests import Request
from starlette.responses import Response

from error_responses.context import CALL_CONTEXT_KEY, CallContext, serialize
from error_responses.registry import Stage

T = TypeVar("T")


def get_call_context(request: Request) -> Optional[CallContext]:
    """Error responses state of the request, None if the middleware is not installed."""
    return request.scope.get(CALL_CONTEXT_KEY)


async def _run(ctx: Optional[CallContext], stage: Stage, step: Callable[[], Awaitable[T]]) -> T:
    if ctx is None:
        return await step()
    if stage is Stage.RECEIVE:
        return await ctx.receive(step)
    return await ctx.send(step)


async def receive(request: Request, model: Any) -> Any:
    """
    Read the request body and validate it as JSON into `model`.

    Args:
        request: Current request
        model: Pydantic model or any type pydantic can validate

    Returns:
        The validated body

    Raises:
        pydantic.ValidationError: If the body is not valid for `model`
    """
    async def decode() -> Any:
        body = await request.body()
        return TypeAdapter(model).validate_json(body)

    return await _run(get_call_context(request), Stage.RECEIVE, decode)


async def respond(
    request: Request,
    content: Any,
    status_code: int = 200,
    headers: Optional[dict[str, str]] = None,
) -> Response:
    """
    Serialize `content` as JSON into a response.

    Raises:
        pydantic_core.PydanticSerializationError: If `content` cannot be serialized
    """
    ctx = get_call_context(request)

    async def encode() -> bytes:
        return serialize(content)

    body = await _run(ctx, Stage.SEND, encode)
    media_type = ctx.feature.settings.media_type if ctx is not None else "application/json"
    return Response(content=body, status_code=status_code, headers=headers, media_type=media_type)
