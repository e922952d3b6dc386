"""ASGI middleware components."""

from error_responses.middleware.request_id import RequestIdMiddleware, get_request_id
from error_responses.middleware.error_responses import ErrorResponsesMiddleware

__all__ = ["RequestIdMiddleware", "get_request_id", "ErrorResponsesMiddleware"]
