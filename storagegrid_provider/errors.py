"""Exception classes for the StorageGRID provider.

The management API client raises these; resource handlers translate
them into diagnostics.
"""

from typing import Optional


class StorageGridError(Exception):
    """Base exception for all StorageGRID provider errors."""


class AuthenticationError(StorageGridError):
    """Raised when signing in to the management API fails."""


class APIError(StorageGridError):
    """Raised when the management API answers with a non-2xx status.

    Args:
        status_code: HTTP status code of the response
        body: Raw response body
    """

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        super().__init__(message or f"status: {status_code}, body: {body}")
        self.status_code = status_code
        self.body = body


class NotFoundError(APIError):
    """Raised when a bucket, user, group or key does not exist.

    The message always contains "not found" so callers that only see
    the rendered text can still recognise it.
    """

    def __init__(self, message: str, status_code: int = 404, body: str = ""):
        if "not found" not in message.lower():
            message = f"{message} (not found)"
        super().__init__(status_code, body, message)


class DecodeError(StorageGridError):
    """Raised when a response body cannot be decoded into the expected shape."""


class S3OperationError(StorageGridError):
    """Raised when an S3-protocol operation fails."""


def is_not_found(error: BaseException) -> bool:
    """Check whether an error means the target resource does not exist.

    Args:
        error: Any exception raised by the client layer.

    Returns:
        True for NotFoundError, or any error whose text says "not found".
    """
    if isinstance(error, NotFoundError):
        return True
    return "not found" in str(error).lower()
