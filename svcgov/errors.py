"""Errors raised by calls to services and how the client treats them."""

from __future__ import annotations


class ServiceError(Exception):
    """An error reported by the server while handling a call.

    Such errors come from the service itself, so retrying the call on
    another server or dropping the connection does not help.
    Subclasses may override :meth:`is_service_error` to opt out.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def is_service_error(self) -> bool:
        """Tell whether this error was produced by the service."""
        return True

    def __str__(self) -> str:
        return self.message


class DeadlineExceeded(TimeoutError):
    """The deadline of a call passed before it completed."""

    def __init__(self, message: str = "context deadline exceeded") -> None:
        super().__init__(message)


class Canceled(Exception):
    """The call was cancelled by the caller."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


def new_service_error(message: str) -> ServiceError:
    """Create a ServiceError carrying ``message``."""
    return ServiceError(message)


def _is_service_error(err: BaseException | None) -> bool:
    return isinstance(err, ServiceError) and err.is_service_error()


def context_canceled(err: BaseException | None) -> bool:
    """Tell whether ``err`` means the call was cancelled or timed out."""
    return isinstance(err, (DeadlineExceeded, Canceled))


def uncover_error(err: BaseException | None) -> bool:
    """Tell whether ``err`` points at a broken connection to the server.

    Errors from the service itself, cancellations and deadlines do not;
    any other error does, and the client connection should be dropped.
    """
    if _is_service_error(err):
        return False
    if context_canceled(err):
        return False
    return True