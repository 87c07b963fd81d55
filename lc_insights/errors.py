"""
Structured Error Responses for LeetCode Insights.

Every failure surfaced by the API is an APIError subclass carrying a stable
error code and HTTP status; the app's exception handler turns it into the
standard error envelope.
"""

from typing import Optional, Dict, Any
from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class ErrorCode(str, Enum):
    """Error codes returned in the `code` field."""

    # Caller errors (4xx)
    INVALID_USERNAME = "INVALID_USERNAME"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NO_SNAPSHOTS = "NO_SNAPSHOTS"
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Upstream and storage errors (5xx)
    LEETCODE_API_ERROR = "LEETCODE_API_ERROR"
    LEETCODE_API_TIMEOUT = "LEETCODE_API_TIMEOUT"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ErrorResponse:
    """Error envelope: {error: true, code, message, timestamp, detail?, retry_after?}."""

    code: str
    message: str
    detail: Optional[str] = None
    retry_after: Optional[int] = None
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "error": True,
            "code": self.code,
            "message": self.message,
            "timestamp": self.timestamp or _timestamp(),
        }
        if self.detail:
            body["detail"] = self.detail
        if self.retry_after:
            body["retry_after"] = self.retry_after
        return body


class APIError(Exception):
    """
    Base class for errors with a structured response.

    Subclasses pin `code` and `status_code`; instances carry the message,
    an optional detail and, for rate limiting, a retry delay.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None, retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.retry_after = retry_after

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            code=self.code.value,
            message=self.message,
            detail=self.detail,
            retry_after=self.retry_after,
        )


class ValidationError(APIError):
    """Malformed caller input: wrong types, negative counts, unordered history."""
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class InvalidUsernameError(APIError):
    code = ErrorCode.INVALID_USERNAME
    status_code = 400

    def __init__(self, username: str, detail: Optional[str] = None):
        super().__init__(
            f"Invalid LeetCode username: '{username}'",
            detail or "Username must be 1-40 characters: letters, digits, '_', '-' or '.'",
        )


class UserNotFoundError(APIError):
    """LeetCode has no public profile for the username."""
    code = ErrorCode.USER_NOT_FOUND
    status_code = 404

    def __init__(self, username: str):
        super().__init__(f"LeetCode user not found or private: '{username}'")


class NoSnapshotsError(APIError):
    """History requested for a user that was never snapshotted."""
    code = ErrorCode.NO_SNAPSHOTS
    status_code = 404

    def __init__(self, username: str):
        super().__init__(
            f"No snapshots yet for '{username}'",
            "Take a snapshot first using POST /api/leetcode/snapshot/{username}",
        )


class LeetCodeAPIError(APIError):
    code = ErrorCode.LEETCODE_API_ERROR
    status_code = 502

    def __init__(self, message: str = "LeetCode API error", detail: Optional[str] = None):
        super().__init__(message, detail)


class LeetCodeTimeoutError(APIError):
    code = ErrorCode.LEETCODE_API_TIMEOUT
    status_code = 504

    def __init__(self):
        super().__init__("LeetCode API timeout", "LeetCode did not respond in time. Please try again.")


class StorageUnavailableError(APIError):
    """Snapshot storage is not configured or unreachable."""
    code = ErrorCode.STORAGE_UNAVAILABLE
    status_code = 503

    def __init__(self, detail: Optional[str] = None):
        super().__init__("Snapshot storage unavailable", detail)


class RateLimitError(APIError):
    code = ErrorCode.RATE_LIMITED
    status_code = 429

    def __init__(self, retry_after: int = 60):
        super().__init__("Rate limit exceeded", "Too many requests. Please slow down.", retry_after)


def success_response(data: Any, cached: Optional[bool] = None) -> Dict[str, Any]:
    """Success envelope: {error: false, data, timestamp, cached?}."""
    response = {
        "error": False,
        "data": data,
        "timestamp": _timestamp(),
    }
    if cached is not None:
        response["cached"] = cached
    return response
