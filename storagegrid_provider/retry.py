"""Error classification and the bounded retries of the client layer.

Only two failure classes are ever handled rather than surfaced:

Timeouts (reconciled, not retried):
- httpx timeout exceptions
- socket timeouts
- any error whose text mentions a timeout or an exceeded deadline

S3 authorization failures (retried exactly once with a fresh credential):
- AccessDenied
- InvalidAccessKey(Id)
- TokenRefreshRequired
- ExpiredToken
"""

from enum import Enum
from typing import Any, Callable, Optional

import httpx
from botocore.exceptions import ClientError

from storagegrid_provider.errors import StorageGridError

TIMEOUT_MARKERS = ("timeout", "timed out", "deadline exceeded")

AUTH_ERROR_MARKERS = (
    "AccessDenied",
    "InvalidAccessKey",
    "TokenRefreshRequired",
    "ExpiredToken",
)


class RetryExhausted(StorageGridError):
    """Raised when the single retry of an operation also failed."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class CredentialState(Enum):
    """States of a credential-backed operation across its retry."""

    FRESH = "fresh"
    EXPIRED = "expired"
    REFRESHED = "refreshed"
    FATAL_EXPIRED = "fatal_expired"


def _error_chain(error: BaseException):
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def is_timeout_error(error: BaseException) -> bool:
    """Determine if an error means the request timed out.

    Args:
        error: The exception that was raised.

    Returns:
        True if the error, or any error it was raised from, is a timeout.
    """
    for item in _error_chain(error):
        if isinstance(item, (httpx.TimeoutException, TimeoutError)):
            return True
        text = str(item).lower()
        if any(marker in text for marker in TIMEOUT_MARKERS):
            return True
    return False


def is_auth_error(error: BaseException) -> bool:
    """Determine if an S3 error is caused by a stale or revoked credential.

    Args:
        error: The exception raised by an S3 operation.

    Returns:
        True if the error code or text names an authorization failure.
    """
    for item in _error_chain(error):
        if isinstance(item, ClientError):
            code = item.response.get("Error", {}).get("Code", "")
            if any(marker in code for marker in AUTH_ERROR_MARKERS):
                return True
        text = str(item)
        if any(marker in text for marker in AUTH_ERROR_MARKERS):
            return True
    return False


def retry_once(
    func: Callable[[], Any],
    should_retry: Callable[[Exception], bool],
    before_retry: Callable[[Exception], None],
) -> Any:
    """Run an operation, retrying it once after a recoverable failure.

    Args:
        func: The operation to run.
        should_retry: Decides whether a failure is recoverable.
        before_retry: Called with the first failure before the retry,
            typically to refresh a credential. Its errors propagate.

    Returns:
        The return value of func.

    Raises:
        RetryExhausted: If the retry failed too.
        Exception: A non-recoverable first failure is raised unchanged.
    """
    try:
        return func()
    except Exception as e:
        if not should_retry(e):
            raise
        before_retry(e)

    try:
        return func()
    except Exception as e:
        raise RetryExhausted(
            f"operation failed after retry: {e}",
            attempts=2,
            last_error=e,
        ) from e
