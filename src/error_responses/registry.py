"""
Handler registration and exception hierarchy resolution.

Handlers are registered on a mutable `Configuration` during application
setup. Installing the extension turns the configuration into immutable
`HandlerTable`s that are only read while requests are served.
"""

import inspect
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Mapping, Optional, TypeVar

if TYPE_CHECKING:
    from error_responses.context import CallContext
    from error_responses.core.config import Settings


ExceptionHandler = Callable[["CallContext", Exception], Awaitable[None]]
StatusHandler = Callable[["CallContext", int], Awaitable[None]]

H = TypeVar("H")


class Stage(str, Enum):
    """Request processing stage an exception was raised in."""

    RECEIVE = "receive"
    CALL = "call"
    SEND = "send"


def _split_bases(cls: type) -> tuple[Optional[type], tuple[type, ...]]:
    """Split the direct bases of a class into its superclass and interfaces.

    For exception classes the superclass is the first base continuing the
    exception lineage; every other base (mixins, ABCs) is an interface, in
    declaration order.
    """
    bases = cls.__bases__
    for base in bases:
        if issubclass(base, BaseException):
            return base, tuple(b for b in bases if b is not base)
    if not bases:
        return None, ()
    return bases[0], bases[1:]


def find_handler(exc_class: type, handlers: Mapping[type, H]) -> Optional[H]:
    """
    Find the most specific handler registered for an exception class.

    The lookup is depth-first: the class itself, then its superclass
    (recursively, with that superclass's own interfaces), then its own
    interfaces in declaration order. Every class on the superclass chain is
    therefore tried before any interface.

    Args:
        exc_class: Runtime class of the raised exception
        handlers: Handlers keyed by exception class

    Returns:
        The matching handler, or None
    """
    handler = handlers.get(exc_class)
    if handler is not None:
        return handler

    superclass, interfaces = _split_bases(exc_class)
    if superclass is not None:
        handler = find_handler(superclass, handlers)
        if handler is not None:
            return handler

    for interface in interfaces:
        handler = find_handler(interface, handlers)
        if handler is not None:
            return handler

    return None


class HandlerTable(Mapping[type, ExceptionHandler]):
    """Read-only exception handler mapping for one stage."""

    def __init__(self, stage: Stage, *layers: Mapping[type, ExceptionHandler]) -> None:
        merged: dict[type, ExceptionHandler] = {}
        for layer in layers:
            merged.update(layer)
        self.stage = stage
        self._handlers = MappingProxyType(merged)

    def __getitem__(self, exc_class: type) -> ExceptionHandler:
        return self._handlers[exc_class]

    def __iter__(self) -> Iterator[type]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def find(self, exc_class: type) -> Optional[ExceptionHandler]:
        """Resolve the handler for an exception class by hierarchy walk."""
        return find_handler(exc_class, self._handlers)

    def __repr__(self) -> str:
        return f"HandlerTable(stage={self.stage.value!r}, handlers={len(self)})"


def _check_exception_class(exc_class: Any) -> None:
    if not (isinstance(exc_class, type) and issubclass(exc_class, BaseException)):
        raise TypeError(f"{exc_class!r} is not an exception class")


def _check_status(status: Any) -> None:
    if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
        raise ValueError(f"Invalid HTTP status code: {status!r}")


class Configuration:
    """
    Error responses configuration.

    Exception handlers apply to the registered class and all of its
    subclasses. Handlers registered with `exception` are used in every
    stage unless a receive or send specific handler overrides them.
    Registering the same class or status twice replaces the first handler.

    Every registration method can be used as a decorator:

        @config.exception(OrderNotFound)
        async def order_not_found(ctx, exc):
            await ctx.respond(404, {"order": exc.order_id})

    `settings` are the settings the extension is installed with; handler
    bundles created through `handler` read them from here.
    """

    def __init__(self, settings: Optional["Settings"] = None) -> None:
        self.settings = settings
        self.call_exceptions: dict[type, ExceptionHandler] = {}
        self.receive_exceptions: dict[type, ExceptionHandler] = {}
        self.send_exceptions: dict[type, ExceptionHandler] = {}
        self.statuses: dict[int, StatusHandler] = {}

    def _register(
        self,
        table: dict[type, ExceptionHandler],
        exc_class: type,
        handler: Optional[ExceptionHandler],
    ):
        _check_exception_class(exc_class)

        def decorator(func: ExceptionHandler) -> ExceptionHandler:
            table[exc_class] = func
            return func

        if handler is None:
            return decorator
        return decorator(handler)

    def exception(self, exc_class: type, handler: Optional[ExceptionHandler] = None):
        """Register a handler for `exc_class` raised in any stage."""
        return self._register(self.call_exceptions, exc_class, handler)

    def receive_exception(self, exc_class: type, handler: Optional[ExceptionHandler] = None):
        """Register a handler for `exc_class` raised while receiving the request body."""
        return self._register(self.receive_exceptions, exc_class, handler)

    def send_exception(self, exc_class: type, handler: Optional[ExceptionHandler] = None):
        """Register a handler for `exc_class` raised while sending the response."""
        return self._register(self.send_exceptions, exc_class, handler)

    def status(self, *statuses: int, handler: Optional[StatusHandler] = None):
        """Register a handler for responses sent with any of `statuses`."""
        for status in statuses:
            _check_status(status)

        def decorator(func: StatusHandler) -> StatusHandler:
            for status in statuses:
                self.statuses[status] = func
            return func

        if handler is None:
            return decorator
        return decorator(handler)

    def handler(self, handler_class: Callable[["Configuration"], H], configure: Optional[Callable[[H], None]] = None) -> H:
        """
        Create a handler bundle bound to this configuration.

        Args:
            handler_class: Class whose constructor takes the configuration
            configure: Optional callback receiving the created bundle

        Returns:
            The created handler bundle

        Raises:
            TypeError: If the class cannot be created from a configuration
        """
        try:
            inspect.signature(handler_class).bind(self)
        except TypeError as e:
            name = getattr(handler_class, "__qualname__", repr(handler_class))
            raise TypeError(
                f"{name} handler does not accept a {type(self).__name__} as its only argument"
            ) from e
        bundle = handler_class(self)
        if configure is not None:
            configure(bundle)
        return bundle
