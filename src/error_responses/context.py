"""
Per-request state of the error responses extension.

A `CallContext` is created by the middleware when a request enters the
application and is threaded through the receive, call and send stages of
that request only.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel
from pydantic_core import to_json
from starlette.types import Message, Scope, Send

from error_responses.core.exceptions import CallIdMissingError
from error_responses.registry import ExceptionHandler, Stage

if TYPE_CHECKING:
    from error_responses.feature import ErrorResponses

T = TypeVar("T")

CALL_CONTEXT_KEY = "error_responses.call"


@dataclass(frozen=True)
class StageFailure:
    """Exception caught in an inner stage together with the handler resolved for it."""

    error: Exception
    handler: ExceptionHandler
    stage: Stage


def serialize(content: Any) -> bytes:
    """Serialize a response body to JSON bytes."""
    if isinstance(content, BaseModel):
        return content.model_dump_json().encode("utf-8")
    return to_json(content)


class CallContext:
    """
    State of one request flowing through the error responses stages.

    Attributes:
        scope: ASGI connection scope
        feature: Installed error responses feature
        call_id: Request id from the correlation provider
        status: Status written to the transport, None until the response starts
        converted: Whether an error response was already produced for this request
        finished: Whether further application output must be dropped
        failure: Latest receive or send stage failure awaiting the call stage
    """

    def __init__(
        self,
        scope: Scope,
        send: Send,
        feature: "ErrorResponses",
        call_id: Optional[str] = None,
    ) -> None:
        self.scope = scope
        self.feature = feature
        self.call_id = call_id
        self.status: Optional[int] = None
        self.converted = False
        self.finished = False
        self.failure: Optional[StageFailure] = None
        self.pending_start: Optional[Message] = None
        self.response_has_body = False
        self._transport_send = send

    @property
    def path(self) -> str:
        return self.scope.get("path", "")

    @property
    def instance(self) -> str:
        """Request id identifying this error occurrence."""
        if not self.call_id:
            raise CallIdMissingError("No request id is bound to this call")
        return self.call_id

    async def receive(self, proceed: Callable[[], Awaitable[T]]) -> T:
        """Run a request reading step under the receive stage guard."""
        return await self.feature.intercept_receive(self, proceed)

    async def send(self, proceed: Callable[[], Awaitable[T]]) -> T:
        """Run a response writing step under the send stage guard."""
        return await self.feature.intercept_send(self, proceed)

    def take_failure(self, exc: BaseException) -> Optional[StageFailure]:
        """Consume the recorded stage failure if it belongs to `exc`."""
        failure, self.failure = self.failure, None
        if failure is not None and failure.error is exc:
            return failure
        return None

    async def write(self, message: Message) -> None:
        """Write a message straight to the transport, recording the status once it was accepted."""
        await self._transport_send(message)
        if message["type"] == "http.response.start":
            self.status = message["status"]

    async def respond(self, status: int, content: Any, headers: Optional[dict[str, str]] = None) -> None:
        """
        Send a complete JSON response for this call.

        The response bypasses the send stage guard and the status observer,
        so a failure here is never converted again.
        """
        body = serialize(content)
        raw_headers = [
            (b"content-type", self.feature.settings.media_type.encode("latin-1")),
            (b"content-length", str(len(body)).encode("latin-1")),
        ]
        for name, value in (headers or {}).items():
            raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

        self.pending_start = None
        await self.write({"type": "http.response.start", "status": status, "headers": raw_headers})
        await self.write({"type": "http.response.body", "body": body, "more_body": False})

    def finish_if_response_sent(self) -> bool:
        """Stop further processing of this call once a status was written."""
        if self.status is not None:
            self.finished = True
        return self.finished

    def __repr__(self) -> str:
        return (
            f"CallContext(path={self.path!r}, call_id={self.call_id!r}, "
            f"status={self.status!r}, converted={self.converted!r})"
        )
