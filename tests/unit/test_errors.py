"""
Unit tests for the canonical error categories.
"""

import grpc
import pytest

from osint.geovision_server.errors import (
    INTERNAL_ERROR_MESSAGE,
    BadRequestError,
    GeovisionError,
    InternalError,
    NotFoundError,
    UnavailableError,
    UnimplementedError,
    UnknownStatusError,
    error_from_status,
)


class TestErrorCategories:
    """Tests for status mappings and wire form."""

    @pytest.mark.parametrize(
        "cls, code, grpc_status, http_status",
        [
            (BadRequestError, "BAD_REQUEST", grpc.StatusCode.INVALID_ARGUMENT, 400),
            (NotFoundError, "NOT_FOUND", grpc.StatusCode.NOT_FOUND, 404),
            (InternalError, "INTERNAL", grpc.StatusCode.INTERNAL, 500),
            (UnimplementedError, "UNIMPLEMENTED", grpc.StatusCode.UNIMPLEMENTED, 501),
        ],
    )
    def test_mappings(self, cls, code, grpc_status, http_status):
        assert issubclass(cls, GeovisionError)
        assert cls.code == code
        assert cls.grpc_status == grpc_status
        assert cls.http_status == http_status

    def test_to_dict(self):
        assert BadRequestError("id is required").to_dict() == {
            "error": "id is required",
            "code": "BAD_REQUEST",
        }

    def test_internal_message_is_generic(self):
        """Internal errors never carry store detail to the client."""
        error = InternalError(details={"cause": "connection refused"})

        assert error.message == INTERNAL_ERROR_MESSAGE
        assert error.to_dict()["error"] == "Internal service error. Please try again later."

    def test_not_found_details(self):
        error = NotFoundError("Source not found", "sources", "12")

        assert error.resource_type == "sources"
        assert error.resource_id == "12"
        assert error.details == {"resource_type": "sources", "resource_id": "12"}


class TestErrorFromStatus:
    """Tests for rebuilding errors on the client side."""

    @pytest.mark.parametrize(
        "status, cls",
        [
            (grpc.StatusCode.INVALID_ARGUMENT, BadRequestError),
            (grpc.StatusCode.NOT_FOUND, NotFoundError),
            (grpc.StatusCode.UNIMPLEMENTED, UnimplementedError),
            (grpc.StatusCode.INTERNAL, InternalError),
        ],
    )
    def test_known_statuses(self, status, cls):
        assert isinstance(error_from_status(status, "message"), cls)

    def test_internal_uses_generic_message(self):
        assert error_from_status(grpc.StatusCode.INTERNAL, "db down").message == INTERNAL_ERROR_MESSAGE

    @pytest.mark.parametrize(
        "status",
        [
            grpc.StatusCode.UNAVAILABLE,
            grpc.StatusCode.RESOURCE_EXHAUSTED,
            grpc.StatusCode.DEADLINE_EXCEEDED,
        ],
    )
    def test_transport_statuses_are_unavailable(self, status):
        error = error_from_status(status, "Concurrent RPC limit exceeded!")

        assert isinstance(error, UnavailableError)
        assert error.code == "UNAVAILABLE"
        assert error.status == status
        assert error.message == "Concurrent RPC limit exceeded!"

    def test_other_status_has_its_own_code(self):
        error = error_from_status(grpc.StatusCode.PERMISSION_DENIED, "")

        assert isinstance(error, UnknownStatusError)
        assert isinstance(error, GeovisionError)
        assert error.code == "UNKNOWN"
        assert error.code != InternalError.code
        assert error.message == "PERMISSION_DENIED"
