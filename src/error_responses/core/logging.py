"""
Structured logging helpers.

The extension only emits structlog events; configuring processors and
renderers is left to the application embedding it.
"""

import structlog


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables to the current logger context.

    Everything logged afterwards in the same execution context carries
    these keys, e.g. the request id bound by the request id middleware.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Unbind context variables from the current logger context."""
    structlog.contextvars.unbind_contextvars(*keys)


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: BaseException,
    event: str,
    **kwargs
) -> None:
    """
    Log an error event with its stack trace.

    Example:
        log_error(logger, exc, "Unexpected error", path="/orders")
    """
    logger.error(
        event,
        error=str(error),
        error_type=type(error).__name__,
        exc_info=error,
        **kwargs
    )
