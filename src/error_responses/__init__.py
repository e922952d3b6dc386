"""Structured error responses for Starlette and FastAPI applications."""

from error_responses.calls import get_call_context, receive, respond
from error_responses.context import CallContext
from error_responses.core.exceptions import CallIdMissingError, ResponseStatusException
from error_responses.core.schemas import ApiError
from error_responses.default_handler import DefaultExceptionHandler
from error_responses.feature import ErrorResponses, install
from error_responses.middleware import ErrorResponsesMiddleware, RequestIdMiddleware, get_request_id
from error_responses.registry import Configuration, Stage, find_handler

__all__ = [
    "ApiError",
    "CallContext",
    "CallIdMissingError",
    "Configuration",
    "DefaultExceptionHandler",
    "ErrorResponses",
    "ErrorResponsesMiddleware",
    "RequestIdMiddleware",
    "ResponseStatusException",
    "Stage",
    "find_handler",
    "get_call_context",
    "get_request_id",
    "install",
    "receive",
    "respond",
]
