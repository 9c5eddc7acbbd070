"""
Shared pytest fixtures and builders for query client tests.

The transport is always a ``MagicMock`` whose ``send`` side effects script
the sequence of attempt outcomes; the client's ``sleep`` records waits
instead of blocking, so retry tests run instantly.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from query_client import QueryClient
from query_client.transport import TransportFailure, TransportResponse
from query_client.types import RequestIntent


# ---------------------------------------------------------------------------
# Outcome builders
# ---------------------------------------------------------------------------

def ok_response(data: dict | None = None, status: int = 200, headers: dict | None = None):
    """2xx response wrapping ``data`` in the service envelope."""
    return TransportResponse(
        status=status,
        body={"status": "success", "data": data if data is not None else {}},
        headers=headers or {},
    )


def query_payload(result="42", **overrides) -> dict:
    """A typical ``data`` object for a query response."""
    payload = {
        "id": "q_123",
        "result": result,
        "model": "gpt-4o",
        "usage": {"promptTokens": 10, "completionTokens": 5, "totalTokens": 15},
        "inputEncoding": "text",
        "outputEncoding": "text",
        "createdAt": "2026-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def http_failure(status: int, body: dict | None = None, headers: dict | None = None):
    """Failure carrying an error response."""
    return TransportFailure(
        f"HTTP {status}",
        response=TransportResponse(status=status, body=body or {}, headers=headers or {}),
        request=RequestIntent(method="POST", path="/query"),
    )


def network_failure():
    """Failure where the request went out but nothing came back."""
    return TransportFailure(
        "Connection reset",
        request=RequestIntent(method="POST", path="/query"),
    )


def setup_failure():
    """Failure raised while preparing the request."""
    return TransportFailure(
        "Invalid URL 'nowhere'",
        request=RequestIntent(method="POST", path="/query"),
        dispatched=False,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def transport():
    """Mock transport; tests set ``transport.send.side_effect``."""
    mock = MagicMock()
    mock.send.return_value = ok_response(query_payload())
    return mock


@pytest.fixture
def sleeps():
    """List collecting every backoff wait requested by the client."""
    return []


@pytest.fixture
def make_client(transport, sleeps):
    """Factory building a client wired to the mock transport."""

    def _make(**kwargs) -> QueryClient:
        kwargs.setdefault("api_token", "test-token")
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("sleep", sleeps.append)
        return QueryClient(**kwargs)

    return _make


@pytest.fixture
def client(make_client):
    """Authenticated client with default settings."""
    return make_client()
