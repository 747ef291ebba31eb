"""Unit tests for the error hierarchy."""

import pytest

from sdbridge.core.errors import (
    REMEDY_NOT_FOUND,
    REMEDY_UNAUTHORIZED,
    REMEDY_UNEXPECTED_RESPONSE,
    REMEDY_UNREACHABLE,
    DecodeError,
    RejectedRequestError,
    SDBridgeError,
    ServiceError,
    TransportError,
    ValidationError,
)


class TestRejectedRequestError:
    """Tests for status categorisation of rejected requests."""

    @pytest.mark.parametrize(
        "status,category",
        [
            (400, "bad-request"),
            (401, "unauthorized"),
            (403, "unauthorized"),
            (404, "not-found"),
            (418, "unknown"),
        ],
    )
    def test_categories(self, status, category):
        assert RejectedRequestError("nope", status).category == category

    def test_remedies(self):
        assert RejectedRequestError("x", 401).remedy == REMEDY_UNAUTHORIZED
        assert RejectedRequestError("x", 404).remedy == REMEDY_NOT_FOUND
        assert RejectedRequestError("x", 418).remedy is None

    def test_to_dict(self):
        assert RejectedRequestError("missing", 404).to_dict() == {
            "error": "RejectedRequestError",
            "message": "missing",
            "remedy": REMEDY_NOT_FOUND,
            "status_code": 404,
            "category": "not-found",
        }


class TestHierarchy:
    """Tests for the common base class."""

    @pytest.mark.parametrize(
        "error",
        [
            ValidationError("bad"),
            TransportError("down"),
            ServiceError("busy", 503),
            RejectedRequestError("no", 400),
            DecodeError("garbled"),
        ],
    )
    def test_all_are_sdbridge_errors(self, error):
        assert isinstance(error, SDBridgeError)
        assert str(error) == error.message

    def test_transport_error_remedy(self):
        error = TransportError("connection refused")
        assert error.remedy == REMEDY_UNREACHABLE
        assert error.status_code is None

    def test_service_error_keeps_status(self):
        assert ServiceError("busy", 429).status_code == 429

    def test_decode_error_remedy(self):
        """Test that an unusable body points at the host, not at connectivity."""
        error = DecodeError("garbled", 200)
        assert error.remedy == REMEDY_UNEXPECTED_RESPONSE
        assert error.remedy != REMEDY_UNREACHABLE
        assert error.status_code == 200
