"""
Tests for replenish.exceptions module.
"""
import pytest

from replenish.exceptions import (
    UpstreamError,
    UpstreamConnectionError,
    UpstreamAPIError,
    UpstreamDataError,
    ValidationError,
    SyncAlreadyRunningError,
)


class TestUpstreamError:
    """Tests for base UpstreamError exception."""

    def test_message_only(self):
        """Error with message only."""
        error = UpstreamError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.details is None

    def test_message_with_details(self):
        """Details are appended to the message."""
        error = UpstreamError("Failed to fetch", "Connection timeout")
        assert str(error) == "Failed to fetch: Connection timeout"


class TestSubclasses:
    """Tests for the specialised upstream errors."""

    def test_connection_error_retry_after(self):
        error = UpstreamConnectionError("Timed out", retry_after=5)
        assert isinstance(error, UpstreamError)
        assert error.retry_after == 5

    def test_api_error_status_code(self):
        error = UpstreamAPIError("API returned 503", status_code=503)
        assert isinstance(error, UpstreamError)
        assert error.status_code == 503

    def test_data_error_expected_got(self):
        error = UpstreamDataError("Bad payload", expected="list", got="dict")
        assert error.expected == "list"
        assert error.got == "dict"


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_str_with_value(self):
        error = ValidationError("rate", "must be positive", -1)
        assert str(error) == "rate: must be positive (got: -1)"

    def test_str_without_value(self):
        error = ValidationError("id", "missing order id")
        assert str(error) == "id: missing order id"

    def test_not_an_upstream_error(self):
        """Validation failures are not upstream failures."""
        assert not isinstance(ValidationError("f", "m"), UpstreamError)


def test_sync_already_running_default_message():
    with pytest.raises(SyncAlreadyRunningError, match="already running"):
        raise SyncAlreadyRunningError()
