"""Exceptions raised and understood by the error responses extension."""


class ResponseStatusException(Exception):
    """
    Generic status exception.

    Subclasses carry the HTTP status that should be sent in response and do
    not have to be registered explicitly with a handler. The class itself is
    abstract: raising a bare status exception says nothing about the failure.

    Attributes:
        status: HTTP status code sent in response to this exception
    """

    def __init__(self, status: int, message: str) -> None:
        if type(self) is ResponseStatusException:
            raise TypeError("ResponseStatusException is abstract, raise a subclass instead")
        super().__init__(message)
        self.status = status


class CallIdMissingError(RuntimeError):
    """Raised when no request id provider is available for error responses."""
