"""Remote error types, classification and user-facing messages."""

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import httpx
from loguru import logger

# PostgreSQL insufficient_privilege, raised by row-level security
PERMISSION_DENIED_CODE = "42501"
# PostgREST: zero rows where exactly one was expected
NOT_FOUND_CODE = "PGRST116"
NETWORK_CODES = frozenset({"network", "timeout"})

_NETWORK_PATTERNS = ("fetch", "network", "connection refused", "timed out")
_STATUS_IN_MESSAGE = re.compile(r"status\s+(\d{3})", re.IGNORECASE)


class ConfigurationError(Exception):
    """Invalid setup: missing key builder, malformed filter, bad accessor."""


class RemoteError(Exception):
    """Rejection reported by a remote accessor."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        details: Any = None,
        hint: str | None = None,
    ):
        self.message = message
        self.code = code
        self.status = status
        self.details = details
        self.hint = hint
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, status={self.status!r}, message={self.message!r})"


class BulkUpdateError(RemoteError):
    """Some items of a bulk update were rejected."""

    def __init__(self, failures: dict[Any, BaseException], succeeded: dict[Any, dict]):
        self.failures = failures
        self.succeeded = succeeded
        self.first = next(iter(failures.values()))
        super().__init__(
            f"Bulk update failed for {len(failures)} items",
            code=getattr(self.first, "code", None),
            status=getattr(self.first, "status", None),
        )


class ErrorKind(StrEnum):
    """Failure classes, in classification order."""

    PERMISSION_DENIED = "permission_denied"
    CLIENT_ERROR = "client_error"
    NETWORK_ERROR = "network_error"
    UNCLASSIFIED = "unclassified"


RETRYABLE_KINDS = frozenset({ErrorKind.NETWORK_ERROR, ErrorKind.UNCLASSIFIED})

_OPERATION_VERBS = {"create": "create", "update": "modify", "delete": "delete"}


@dataclass(frozen=True)
class ClassifiedError:
    """A failure with its class and the message shown to the user."""

    kind: ErrorKind
    title: str
    message: str
    error: BaseException

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


def _status_of(error: BaseException) -> int | None:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status
    match = _STATUS_IN_MESSAGE.search(str(error))
    return int(match.group(1)) if match else None


def is_permission_denied(error: BaseException) -> bool:
    if getattr(error, "code", None) == PERMISSION_DENIED_CODE:
        return True
    return "row-level security" in str(error).lower()


def is_client_error(error: BaseException) -> bool:
    status = _status_of(error)
    return status is not None and 400 <= status < 500


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    if getattr(error, "code", None) in NETWORK_CODES:
        return True
    message = str(error).lower()
    return any(pattern in message for pattern in _NETWORK_PATTERNS)


def is_not_found(error: BaseException) -> bool:
    return getattr(error, "code", None) == NOT_FOUND_CODE or _status_of(error) == 404


def classify(error: BaseException) -> ErrorKind:
    """Classify a failure. Bulk failures are classified by their first item."""
    if isinstance(error, BulkUpdateError):
        error = error.first
    if is_permission_denied(error):
        return ErrorKind.PERMISSION_DENIED
    if is_client_error(error):
        return ErrorKind.CLIENT_ERROR
    if is_network_error(error):
        return ErrorKind.NETWORK_ERROR
    return ErrorKind.UNCLASSIFIED


def is_retryable(error: BaseException) -> bool:
    """Query retry predicate: never cancellations, permission or client errors."""
    return isinstance(error, Exception) and classify(error) in RETRYABLE_KINDS


def classify_error(error: BaseException, operation: str | None = None) -> ClassifiedError:
    """Classify a failure and attach the user-facing title and message."""
    kind = classify(error)
    text = str(error)

    if kind is ErrorKind.PERMISSION_DENIED:
        verb = _OPERATION_VERBS.get(operation or "", "access")
        return ClassifiedError(kind, "Permission Denied", f"You don't have permission to {verb} this resource.", error)
    if kind is ErrorKind.CLIENT_ERROR:
        return ClassifiedError(kind, "Request Error", text or "Invalid request", error)
    if kind is ErrorKind.NETWORK_ERROR:
        return ClassifiedError(kind, "Network Error", "Please check your internet connection and try again.", error)
    return ClassifiedError(kind, "Error", text or "An unexpected error occurred. Please try again.", error)


def log_query_error(key: Any, error: ClassifiedError) -> None:
    """Global hook for failed queries."""
    if error.kind is ErrorKind.PERMISSION_DENIED:
        logger.warning("Access denied for {}: {}", key, error.error)
    elif error.kind is ErrorKind.CLIENT_ERROR:
        logger.warning("Client error for {}, no retry: {}", key, error.error)
    elif error.kind is ErrorKind.NETWORK_ERROR:
        logger.warning("Network error for {} after retries: {}", key, error.error)
    else:
        logger.warning("Unexpected query error for {}: {}", key, error.error)
