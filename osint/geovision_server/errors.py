"""
Error types for the Geovision server.

This module defines the canonical error categories every layer above the
store gateway speaks:
- GeovisionError: Base exception
- BadRequestError: Missing or malformed arguments
- NotFoundError: Target document absent
- InternalError: Store I/O failure or unexpected decode failure
- UnimplementedError: Operation is stubbed

Client-side only, rebuilt from transport statuses:
- UnavailableError: Server unreachable, overloaded or past the deadline
- UnknownStatusError: Any other status without a category

Invariants:
    - All service errors inherit from GeovisionError
    - Each category maps to exactly one gRPC status and one HTTP status
    - Internal errors never expose store details to the client

How to change safely:
    - Callers rely on the category only, never on the message text
    - Adding a category means adding it to both transport mappings
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import grpc

INTERNAL_ERROR_MESSAGE = "Internal service error. Please try again later."


class GeovisionError(Exception):
    """Base exception for all Geovision service errors.

    Attributes:
        message: Error message returned to the client
        code: Canonical category for programmatic handling
        details: Additional error context (server-side only)
    """

    code = "INTERNAL"
    grpc_status = grpc.StatusCode.INTERNAL
    http_status = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class BadRequestError(GeovisionError):
    """Argument validation failed.

    Raised when:
    - A required field is missing or empty
    - A qualified id is malformed
    - A relation name normalizes to the empty string
    - A time window is inverted
    """

    code = "BAD_REQUEST"
    grpc_status = grpc.StatusCode.INVALID_ARGUMENT
    http_status = 400


class NotFoundError(GeovisionError):
    """Target document does not exist.

    Attributes:
        resource_type: Collection or entity kind
        resource_id: Key or qualified id that was looked up
    """

    code = "NOT_FOUND"
    grpc_status = grpc.StatusCode.NOT_FOUND
    http_status = 404

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class InternalError(GeovisionError):
    """Store I/O failure or unexpected decode failure.

    The message is always the generic client-facing text; the underlying
    cause is kept in ``__cause__`` for server-side logging.
    """

    code = "INTERNAL"
    grpc_status = grpc.StatusCode.INTERNAL
    http_status = 500

    def __init__(self, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(INTERNAL_ERROR_MESSAGE, details=details)


class UnimplementedError(GeovisionError):
    """Operation is stubbed and must not be relied on."""

    code = "UNIMPLEMENTED"
    grpc_status = grpc.StatusCode.UNIMPLEMENTED
    http_status = 501


class UnavailableError(GeovisionError):
    """The server could not take the call: unreachable, overloaded or timed out.

    Only raised client-side, from transport statuses the server never
    assigns itself. Retriable.

    Attributes:
        status: The gRPC status the call ended with
    """

    code = "UNAVAILABLE"
    grpc_status = grpc.StatusCode.UNAVAILABLE
    http_status = 503

    def __init__(self, message: str, status: grpc.StatusCode = grpc.StatusCode.UNAVAILABLE) -> None:
        super().__init__(message, details={"grpc_status": status.name})
        self.status = status


class UnknownStatusError(GeovisionError):
    """A gRPC status with no service category."""

    code = "UNKNOWN"
    grpc_status = grpc.StatusCode.UNKNOWN

    def __init__(self, message: str, status: grpc.StatusCode) -> None:
        super().__init__(message or status.name, details={"grpc_status": status.name})
        self.status = status


_BY_GRPC_STATUS = {
    cls.grpc_status: cls
    for cls in (BadRequestError, NotFoundError, InternalError, UnimplementedError)
}

_UNAVAILABLE_STATUSES = (
    grpc.StatusCode.UNAVAILABLE,
    grpc.StatusCode.RESOURCE_EXHAUSTED,
    grpc.StatusCode.DEADLINE_EXCEEDED,
)


def error_from_status(status: grpc.StatusCode, message: str) -> GeovisionError:
    """Rebuild a service error from a gRPC status received by a client."""
    cls = _BY_GRPC_STATUS.get(status)
    if cls is InternalError:
        return InternalError()
    if cls is not None:
        return cls(message)
    if status in _UNAVAILABLE_STATUSES:
        return UnavailableError(message or status.name, status)
    return UnknownStatusError(message, status)
