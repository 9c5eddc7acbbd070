"""
Transport outcome classification.

Maps a failed attempt onto the closed error taxonomy in :mod:`errors`:

    response 401           -> AuthenticationError
    response 400           -> ValidationError
    response 429           -> RateLimitError (carries Retry-After, seconds)
    response >= 500        -> ServerError
    other response         -> ApiError with the original status
    dispatched, no reply   -> NetworkError, status 0
    failed before dispatch -> ApiError, status 0

No I/O occurs here; :func:`classify` is a pure function of its inputs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from .errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from .transport import TransportFailure, TransportResponse

DEFAULT_MESSAGES: dict[type[ApiError], str] = {
    AuthenticationError: "Authentication failed. Please check your API token.",
    ValidationError: "Invalid request parameters",
    RateLimitError: "Rate limit exceeded. Please try again later.",
    ServerError: "Server error occurred. Please try again later.",
    NetworkError: "No response received from the server. Please check your network connection.",
}
SETUP_FAILURE_MESSAGE = "An error occurred while setting up the request"


def parse_retry_after(value: Any, now: datetime | None = None) -> float | None:
    """
    Parse a ``Retry-After`` header value into seconds.

    Accepts delta-seconds (``"2"``) and HTTP dates.  Dates in the past
    yield ``0.0``.

    Args:
        value: Raw header value, or ``None``.
        now: Reference time for HTTP dates; defaults to the current UTC time.

    Returns:
        Seconds to wait, or ``None`` if the header is absent or unparseable.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    try:
        return max(float(int(text)), 0.0)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    reference = now or datetime.now(timezone.utc)
    return max((when - reference).total_seconds(), 0.0)


def retry_after_hint(response: TransportResponse | None) -> float | None:
    """Return the response's ``Retry-After`` wait in seconds, if it sent one."""
    if response is None:
        return None
    return parse_retry_after(response.header("Retry-After"))


def _error_class_for_status(status: int) -> type[ApiError]:
    if status == 401:
        return AuthenticationError
    if status == 400:
        return ValidationError
    if status == 429:
        return RateLimitError
    if status >= 500:
        return ServerError
    return ApiError


def classify(
    failure: TransportFailure,
    attempt: int,
    max_attempts: int,
) -> ApiError:
    """
    Turn a failed attempt into a typed error.

    The response body's ``message`` field, when present, becomes the error
    message; otherwise a per-kind default is used.  Every error carries
    ``data["retry"] = {"attempt", "max_attempts"}``, plus ``"after"`` for
    rate limits.

    Args:
        failure: Outcome of the failed attempt.
        attempt: 0-based retry count at the time of failure.
        max_attempts: Configured retry limit.

    Returns:
        The classified error (not raised).
    """
    retry: dict[str, Any] = {"attempt": attempt, "max_attempts": max_attempts}
    response = failure.response

    if response is None:
        data = {"original": failure, "retry": retry}
        if failure.dispatched:
            return NetworkError(DEFAULT_MESSAGES[NetworkError], 0, data)
        return ApiError(failure.message or SETUP_FAILURE_MESSAGE, 0, data)

    status = response.status
    body = response.body if isinstance(response.body, dict) else {}
    error_cls = _error_class_for_status(status)

    if error_cls is RateLimitError:
        retry["after"] = retry_after_hint(response)

    message = body.get("message") or DEFAULT_MESSAGES.get(
        error_cls, f"API error with status code: {status}"
    )
    return error_cls(message, status, {**body, "retry": retry})
