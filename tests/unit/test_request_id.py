"""Unit tests for the request id middleware."""

import re

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from error_responses.core.config import Settings
from error_responses.middleware.request_id import RequestIdMiddleware, get_request_id


async def echo_request_id(request: Request) -> JSONResponse:
    return JSONResponse({"request_id": get_request_id()})


def create_app(settings: Settings | None = None) -> Starlette:
    app = Starlette(routes=[Route("/id", echo_request_id)])
    app.add_middleware(RequestIdMiddleware, settings=settings or Settings())
    return app


async def get(app: Starlette, headers: dict | None = None) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get("/id", headers=headers)


@pytest.mark.asyncio
async def test_request_id_from_header_is_reused():
    response = await get(create_app(), {"X-Request-ID": "client-id-1"})

    assert response.json() == {"request_id": "client-id-1"}
    assert response.headers["X-Request-ID"] == "client-id-1"


@pytest.mark.asyncio
async def test_request_id_generated_when_missing():
    response = await get(create_app())

    request_id = response.json()["request_id"]
    assert re.fullmatch(r"req_[0-9a-f]{16}", request_id)
    assert response.headers["X-Request-ID"] == request_id


@pytest.mark.asyncio
async def test_blank_request_id_is_replaced():
    response = await get(create_app(), {"X-Request-ID": "   "})

    assert response.json()["request_id"].startswith("req_")


@pytest.mark.asyncio
async def test_request_ids_differ_between_requests():
    app = create_app()

    first = await get(app)
    second = await get(app)

    assert first.json()["request_id"] != second.json()["request_id"]


@pytest.mark.asyncio
async def test_header_name_from_settings():
    app = create_app(Settings(request_id_header="X-Correlation-ID"))

    response = await get(app, {"X-Correlation-ID": "corr-7"})

    assert response.json() == {"request_id": "corr-7"}
    assert response.headers["X-Correlation-ID"] == "corr-7"


@pytest.mark.asyncio
async def test_request_id_reset_after_request():
    await get(create_app(), {"X-Request-ID": "client-id-2"})

    assert get_request_id() is None
