"""
Typed error hierarchy for the query client.

Every failure surfaced to callers is an :class:`ApiError` or one of its
subclasses.  The ``kind`` constant on each class is the closed taxonomy used
by the classifier and the retry controller's log lines:

    authentication  bad or missing credential (401)
    validation      malformed caller input or response body (400)
    rate_limit      429, carries the server's Retry-After hint
    server          5xx
    network         no response reached the client (status 0)
    api             anything else
"""

from __future__ import annotations

from typing import Any

from .types import RetryMeta


class ApiError(Exception):
    """
    Base error for every failure raised by the client.

    Attributes:
        message: Human-readable description.
        status_code: HTTP status, or 0 when no response was received.
        data: Error payload.  Mirrors the server's error body and may hold
            ``message``, ``code``, ``details``, ``original`` (the underlying
            exception) and ``retry`` (attempt bookkeeping).
    """

    kind = "api"
    default_status = 0

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = self.default_status if status_code is None else status_code
        self.data: dict[str, Any] = data if data is not None else {}

    @property
    def retry_meta(self) -> RetryMeta | None:
        """Attempt bookkeeping attached by the classifier, if any."""
        retry = self.data.get("retry")
        if not retry:
            return None
        return RetryMeta(
            attempt=retry.get("attempt", 0),
            max_attempts=retry.get("max_attempts", 0),
            after=retry.get("after"),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class AuthenticationError(ApiError):
    """Raised for 401 responses and for calls made without a credential."""

    kind = "authentication"
    default_status = 401


class ValidationError(ApiError):
    """Raised for 400 responses and for caller input rejected before dispatch."""

    kind = "validation"
    default_status = 400


class NetworkError(ApiError):
    """Raised when the request was sent but no response came back."""

    kind = "network"
    default_status = 0


class RateLimitError(ApiError):
    """Raised for 429 responses."""

    kind = "rate_limit"
    default_status = 429

    @property
    def retry_after(self) -> float | None:
        """Server-requested wait in seconds, when the response supplied one."""
        meta = self.retry_meta
        return meta.after if meta else None


class ServerError(ApiError):
    """Raised for 5xx responses."""

    kind = "server"
    default_status = 500


ERROR_KINDS: dict[str, type[ApiError]] = {
    cls.kind: cls
    for cls in (
        ApiError,
        AuthenticationError,
        ValidationError,
        NetworkError,
        RateLimitError,
        ServerError,
    )
}
