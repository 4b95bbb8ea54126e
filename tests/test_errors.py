"""Tests for the error taxonomy."""

import asyncio

import pytest

from lazycord.permissions import Permission
from lazycord.rest import (
    BlockingCallError,
    ClientException,
    DecodeError,
    ErrorCode,
    ErrorKind,
    Forbidden,
    HierarchyError,
    HTTPException,
    MissingPermission,
    NotFound,
    ServerError,
    StalePrecondition,
    TooManyRetries,
    TransportError,
    ValidationError,
    classify,
)


class TestHTTPException:
    """Tests for HTTP errors."""

    def test_create_picks_subclass(self):
        """Test statuses map to the most specific class."""
        assert type(HTTPException.create(403, {})) is Forbidden
        assert type(HTTPException.create(404, {})) is NotFound
        assert type(HTTPException.create(502, "bad gateway")) is ServerError
        assert type(HTTPException.create(400, {})) is HTTPException

    def test_error_code(self):
        """Test the JSON code resolves to an ErrorCode member."""
        error = HTTPException.create(404, {"message": "Unknown Message", "code": 10008})

        assert error.code == 404
        assert error.errno == 10008
        assert error.error_code is ErrorCode.UNKNOWN_MESSAGE
        assert error.message == "Unknown Message"
        assert "Unknown Message" in str(error)

    def test_unknown_error_code(self):
        """Test codes missing from the table resolve to UNKNOWN."""
        assert HTTPException.create(400, {"code": 123456}).error_code is ErrorCode.UNKNOWN
        assert HTTPException.create(400, "plain text").error_code is ErrorCode.UNKNOWN

    def test_form_errors_are_flattened(self):
        """Test nested form errors are readable."""
        error = HTTPException.create(
            400,
            {
                "code": 50035,
                "message": "Invalid Form Body",
                "errors": {
                    "content": {"_errors": [{"code": "BASE_TYPE_MAX_LENGTH", "message": "Too long"}]},
                    "embeds": [{"title": {"_errors": [{"code": "X", "message": "Bad title"}]}}],
                },
            },
        )

        assert error.error_code is ErrorCode.INVALID_FORM_BODY
        assert "content (BASE_TYPE_MAX_LENGTH): Too long" in error.errors
        assert "embeds:0:title (X): Bad title" in error.errors

    def test_retryable(self):
        """Test only server errors are worth retrying."""
        assert HTTPException.create(503, "").retryable
        assert not HTTPException.create(403, {}).retryable
        assert HTTPException.create(403, {}).kind is ErrorKind.REMOTE


class TestTaxonomy:
    """Tests for kinds and classification."""

    @pytest.mark.parametrize(
        "error, kind, retryable",
        [
            (ValidationError("x"), ErrorKind.VALIDATION, False),
            (MissingPermission(Permission.KICK_MEMBERS), ErrorKind.VALIDATION, False),
            (HierarchyError("x"), ErrorKind.VALIDATION, False),
            (BlockingCallError("x"), ErrorKind.VALIDATION, False),
            (StalePrecondition("x"), ErrorKind.STALE, False),
            (TransportError("x"), ErrorKind.TRANSPORT, True),
            (TooManyRetries("x"), ErrorKind.TRANSPORT, True),
            (DecodeError("x"), ErrorKind.DECODE, False),
        ],
    )
    def test_kinds(self, error, kind, retryable):
        """Test every error carries its kind and retryability."""
        assert isinstance(error, ClientException)
        assert error.kind is kind
        assert error.retryable is retryable
        assert classify(error) is kind

    def test_builtin_bases(self):
        """Test validation errors are also ValueError."""
        assert isinstance(ValidationError("x"), ValueError)
        assert isinstance(BlockingCallError("x"), RuntimeError)

    def test_classify_cancelled(self):
        """Test cancellation is classified separately."""
        assert classify(asyncio.CancelledError()) is ErrorKind.CANCELLED
        assert classify(KeyError("x")) is None
