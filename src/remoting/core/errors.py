"""Errors raised while binding, invoking and rendering a remote method call."""
from __future__ import annotations

from typing import Any


class RemotingError(Exception):
    """Base error: code + message, and the HTTP status it maps to (None: let the caller decide)."""

    status: int | None = None
    code = "INTERNAL"

    def __init__(self, message: str, *, code: str | None = None, status: int | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        super().__init__(message)


class BindingError(RemotingError):
    """A declared argument could not be converted to its declared type."""

    status = 400
    code = "INVALID_ARGUMENT"

    def __init__(self, message: str, *, arg: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.arg = arg


class ContractViolation(AssertionError):
    """A type converter returned neither a value nor an error. Programmer error, never user-facing."""


class InvocationError(RemotingError):
    """The remote procedure failed. `status` takes precedence over the method's default error status."""

    code = "INVOCATION_FAILED"


class UnsupportedConfigurationError(RemotingError):
    """Method metadata asks for a pipe or stream kind that is not supported."""

    code = "UNSUPPORTED_CONFIGURATION"


class SerializationError(RemotingError):
    """The result could not be rendered in the negotiated format."""

    code = "SERIALIZATION_FAILED"


class NegotiationFailure(RemotingError):
    """No acceptable response format. Answered with a 406 body; kept on the context as ctx.error."""

    status = 406
    code = "NOT_ACCEPTABLE"


def error_status(err: BaseException) -> int | None:
    """HTTP status carried by an error (`status` or `status_code` attribute), if any."""
    for attr in ("status", "status_code"):
        value = getattr(err, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def error_details(err: BaseException) -> dict[str, Any]:
    """`message` plus the error's own public attributes, for error frames and error bodies."""
    out: dict[str, Any] = {"message": getattr(err, "message", None) or str(err)}
    for key, value in vars(err).items():
        if key.startswith("_"):
            continue
        out[key] = value
    return out
