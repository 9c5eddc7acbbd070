"""
HTTP transport boundary: outcome records and the default ``requests`` adapter.

The rest of the client only relies on ``send(intent, base_url, timeout)``
returning a :class:`TransportResponse` for 2xx replies and raising
:class:`TransportFailure` otherwise, so any object with that method can be
injected in place of :class:`RequestsTransport`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from .config import LOGGER_NAME
from .types import RequestIntent

lib_logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class TransportResponse:
    """Status, decoded body, and headers of one HTTP reply."""

    status: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class TransportFailure(Exception):
    """
    A single attempt that did not produce a 2xx response.

    Attributes:
        response: The error response, or ``None`` when nothing came back.
        request: The intent that was being sent.
        dispatched: ``False`` when the failure happened while preparing the
            request, before anything reached the network.
    """

    def __init__(
        self,
        message: str,
        response: Optional[TransportResponse] = None,
        request: Optional[RequestIntent] = None,
        dispatched: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.response = response
        self.request = request
        self.dispatched = dispatched

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response is not None else None


def decode_body(response: requests.Response) -> Any:
    """Return the JSON-decoded body, or the raw text when it is not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestsTransport:
    """
    Transport backed by a ``requests.Session``.

    The session is created lazily and reused across calls; call
    :meth:`close` (or close the owning client) to release its connections.
    """

    # Errors raised while building the request, before any bytes are sent
    _SETUP_ERRORS = (
        requests.exceptions.MissingSchema,
        requests.exceptions.InvalidSchema,
        requests.exceptions.InvalidURL,
        requests.exceptions.InvalidHeader,
    )

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def send(
        self,
        intent: RequestIntent,
        base_url: str,
        timeout: float,
    ) -> TransportResponse:
        """
        Send one intent and return the reply.

        Args:
            intent: Fully composed request.
            base_url: Scheme and host the intent's path is bound to.
            timeout: Per-attempt timeout in seconds.

        Returns:
            The decoded 2xx response.

        Raises:
            TransportFailure: Non-2xx reply, timeout, connection failure, or
                a request that could not be prepared.
        """
        url = base_url.rstrip("/") + intent.path
        kwargs: dict[str, Any] = {"headers": dict(intent.headers), "timeout": timeout}
        if intent.is_multipart:
            kwargs["data"] = intent.body
            kwargs["files"] = list(intent.files)
        elif intent.body is not None:
            kwargs["json"] = intent.body

        try:
            response = self.session.request(intent.method, url, **kwargs)
        except self._SETUP_ERRORS as exc:
            raise TransportFailure(
                str(exc) or "An error occurred while setting up the request",
                request=intent,
                dispatched=False,
            ) from exc
        except requests.RequestException as exc:
            # Timeouts, refused connections, broken streams, redirect loops
            raise TransportFailure(
                str(exc) or "No response received from the server",
                request=intent,
            ) from exc

        outcome = TransportResponse(
            status=response.status_code,
            body=decode_body(response),
            headers=dict(response.headers),
        )
        if not response.ok:
            raise TransportFailure(
                f"HTTP {response.status_code} for {intent.method} {intent.path}",
                response=outcome,
                request=intent,
            )
        return outcome

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
