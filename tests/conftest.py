"""Pytest configuration and shared fixtures."""

from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, TypeAdapter
from starlette.exceptions import HTTPException

from error_responses import (
    Configuration,
    DefaultExceptionHandler,
    RequestIdMiddleware,
    ResponseStatusException,
    install,
    receive,
    respond,
)
from error_responses.core.config import Settings


class Fixture(BaseModel):
    """Request body of the echo endpoints."""

    name: str
    count: int


class SomeDomainException(Exception):
    """Domain failure mapped to 422 by the test application."""


class OrderLocked(ResponseStatusException):
    """Self-describing exception carrying 423."""

    def __init__(self, order_id: int) -> None:
        super().__init__(423, f"Order {order_id} is locked")


class OrderHandle:
    """Object pydantic cannot serialize."""

    __slots__ = ("order_id",)

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id


async def late_failure(scope, receive, send):
    """Raw ASGI endpoint failing after its response has started."""
    await send({"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"text/plain")]})
    await send({"type": "http.response.body", "body": b"partial", "more_body": True})
    raise SomeDomainException("failed mid-stream")


async def bodyless_then_failure(scope, receive, send):
    """Raw ASGI endpoint sending a bodyless 404 and failing afterwards."""
    await send({"type": "http.response.start", "status": 404, "headers": []})
    await send({"type": "http.response.body", "body": b""})
    raise SomeDomainException("failed after responding")


async def body_then_failure(scope, receive, send):
    """Raw ASGI endpoint sending a 404 with its own body and failing afterwards."""
    await send({"type": "http.response.start", "status": 404, "headers": [(b"content-type", b"text/plain")]})
    await send({"type": "http.response.body", "body": b"gone"})
    raise SomeDomainException("failed after responding")


def configure_handlers(config: Configuration) -> None:
    def register(handler: DefaultExceptionHandler) -> None:
        # Domain
        handler.register(SomeDomainException, 422)
        # Serialization
        handler.register_receive(ValueError, 400)
        handler.register_send(ValueError, 409)

    config.handler(DefaultExceptionHandler, register)


def create_test_app(
    install_request_id: bool = True,
    settings: Settings | None = None,
    configure: Callable[[Configuration], None] = configure_handlers,
) -> FastAPI:
    """Build the application used by the API tests."""
    app = FastAPI()
    if install_request_id:
        app.add_middleware(RequestIdMiddleware, settings=settings)

    install(app, configure, settings=settings)

    @app.get("/no-content")
    async def no_content() -> Response:
        return Response(status_code=204)

    @app.get("/global-error")
    async def global_error() -> Response:
        raise SomeDomainException("Order 42 cannot be shipped")

    @app.get("/unmapped-error")
    async def unmapped_error() -> Response:
        TypeAdapter(Fixture).validate_json("")
        return Response(status_code=200)

    @app.get("/send-error")
    async def send_error(request: Request) -> Response:
        return await respond(request, {"handle": OrderHandle(42)})

    @app.post("/receive-error")
    async def receive_error(request: Request) -> Response:
        return await respond(request, await receive(request, Fixture))

    @app.get("/status-exception")
    async def status_exception() -> Response:
        raise OrderLocked(42)

    @app.get("/empty-not-found")
    async def empty_not_found() -> Response:
        return Response(status_code=404)

    @app.get("/explicit-not-found")
    async def explicit_not_found() -> Response:
        return JSONResponse({"reason": "gone"}, status_code=404)

    @app.get("/http-exception")
    async def http_exception() -> Response:
        raise HTTPException(status_code=403, detail="Not allowed")

    @app.get("/orders/{order_id}")
    async def get_order(order_id: int) -> Response:
        return JSONResponse({"order_id": order_id})

    @app.get("/timeout")
    async def timeout() -> Response:
        raise TimeoutError("upstream took too long")

    app.mount("/late-error", late_failure)
    app.mount("/bodyless-then-error", bodyless_then_failure)
    app.mount("/body-then-error", body_then_failure)

    return app


@pytest.fixture
def test_settings() -> Settings:
    """Settings used by the test application."""
    return Settings()


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_test_app(settings=test_settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client calling the test application in process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def lenient_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client returning whatever was sent when the application raises."""
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
