"""Pydantic schemas for error payloads.

The error payload is compatible with RFC 7807 "Problem Details for HTTP
APIs", extended with the requested path and the time of the occurrence.
"""

from datetime import datetime

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now().astimezone()


class ApiError(BaseModel):
    """Error response body sent to clients."""

    status: int = Field(..., description="HTTP status code")
    type: str = Field(..., description="Identifies the problem type")
    title: str = Field(..., description="Short, human-readable summary of the problem type")
    detail: str = Field(..., description="Explanation specific to this occurrence of the problem")
    instance: str = Field(..., description="Unique identifier of this occurrence, the request id")
    path: str = Field(..., description="HTTP path that was requested")
    timestamp: datetime = Field(default_factory=_now, description="When the error occurred")

    model_config = {"json_schema_extra": {
        "example": {
            "status": 422,
            "type": "shop.orders.OrderAlreadyShipped",
            "title": "Unprocessable Entity",
            "detail": "Order 42 has already been shipped",
            "instance": "req_9f1c2a7b3d4e5f60",
            "path": "/orders/42",
            "timestamp": "2026-02-01T10:30:00.000000+01:00",
        }
    }}
