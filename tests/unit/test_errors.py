"""Tests for error classification and user-facing messages."""

import httpx

from query_cache.errors import (
    BulkUpdateError,
    ErrorKind,
    RemoteError,
    classify,
    classify_error,
    is_not_found,
    is_retryable,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "http://test/rest/v1/items")
    return httpx.HTTPStatusError("failed", request=request, response=httpx.Response(status, request=request))


class TestClassify:
    def test_permission_code(self):
        assert classify(RemoteError("denied", code="42501", status=403)) is ErrorKind.PERMISSION_DENIED

    def test_permission_message(self):
        error = RemoteError('new row violates row-level security policy for table "items"')
        assert classify(error) is ErrorKind.PERMISSION_DENIED

    def test_permission_wins_over_client_status(self):
        assert classify(RemoteError("denied", code="42501", status=401)) is ErrorKind.PERMISSION_DENIED

    def test_client_status(self):
        assert classify(RemoteError("bad", status=400)) is ErrorKind.CLIENT_ERROR
        assert classify(_status_error(422)) is ErrorKind.CLIENT_ERROR

    def test_client_status_in_message(self):
        assert classify(Exception("Request failed with status 404")) is ErrorKind.CLIENT_ERROR

    def test_server_error_is_unclassified(self):
        assert classify(RemoteError("boom", status=500)) is ErrorKind.UNCLASSIFIED
        assert classify(_status_error(503)) is ErrorKind.UNCLASSIFIED

    def test_network(self):
        assert classify(RemoteError("down", code="network")) is ErrorKind.NETWORK_ERROR
        assert classify(Exception("Failed to fetch")) is ErrorKind.NETWORK_ERROR
        assert classify(TimeoutError()) is ErrorKind.NETWORK_ERROR
        assert classify(httpx.ConnectError("refused")) is ErrorKind.NETWORK_ERROR

    def test_bulk_uses_first_failure(self):
        error = BulkUpdateError({"b": RemoteError("denied", code="42501")}, {})
        assert classify(error) is ErrorKind.PERMISSION_DENIED


class TestRetryable:
    def test_kinds(self):
        assert is_retryable(RemoteError("down", code="network"))
        assert is_retryable(RemoteError("boom", status=500))
        assert not is_retryable(RemoteError("bad", status=400))
        assert not is_retryable(RemoteError("denied", code="42501"))

    def test_not_found(self):
        assert is_not_found(RemoteError("none", code="PGRST116", status=406))
        assert is_not_found(RemoteError("none", status=404))
        assert not is_not_found(RemoteError("bad", status=400))


class TestMessages:
    def test_permission_message_names_operation(self):
        error = RemoteError("denied", code="42501")
        assert classify_error(error, "create").message == "You don't have permission to create this resource."
        assert classify_error(error, "update").message == "You don't have permission to modify this resource."
        assert classify_error(error, "delete").message == "You don't have permission to delete this resource."

    def test_titles(self):
        assert classify_error(RemoteError("denied", code="42501")).title == "Permission Denied"
        assert classify_error(RemoteError("bad", status=400)).title == "Request Error"
        assert classify_error(RemoteError("down", code="network")).title == "Network Error"
        assert classify_error(RemoteError("boom", status=500)).title == "Error"

    def test_client_message_passes_through(self):
        classified = classify_error(RemoteError("title too short", status=400))
        assert classified.message == "title too short"
        assert not classified.retryable

    def test_network_message(self):
        classified = classify_error(RemoteError("down", code="network"))
        assert classified.message == "Please check your internet connection and try again."
        assert classified.retryable
