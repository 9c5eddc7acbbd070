"""
Unit tests for src/query_client/transport.py.

The ``requests.Session`` is replaced by a MagicMock so no network traffic
occurs; tests check how intents are framed and how ``requests`` outcomes
map onto TransportResponse / TransportFailure.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from query_client.transport import (
    RequestsTransport,
    TransportFailure,
    TransportResponse,
    decode_body,
)
from query_client.types import RequestIntent


def _fake_response(status: int = 200, payload=None, text: str | None = None, headers=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.ok = status < 400
    response.headers = headers or {"Content-Type": "application/json"}
    if payload is not None:
        response.content = b"{...}"
        response.json.return_value = payload
    elif text is not None:
        response.content = text.encode()
        response.text = text
        response.json.side_effect = ValueError("not json")
    else:
        response.content = b""
    return response


@pytest.fixture
def session():
    mock = MagicMock(spec=requests.Session)
    mock.request.return_value = _fake_response(payload={"status": "success", "data": {"id": "1"}})
    return mock


@pytest.fixture
def transport(session):
    return RequestsTransport(session=session)


# ---------------------------------------------------------------------------
# Class: request framing
# ---------------------------------------------------------------------------

class TestSend:

    def test_json_body(self, transport, session):
        intent = RequestIntent(
            method="POST",
            path="/query",
            body={"query": "hi"},
            headers={"Authorization": "Bearer t"},
        )
        outcome = transport.send(intent, "https://api.example.com/", 12.5)

        session.request.assert_called_once_with(
            "POST",
            "https://api.example.com/query",
            headers={"Authorization": "Bearer t"},
            timeout=12.5,
            json={"query": "hi"},
        )
        assert outcome.status == 200
        assert outcome.body == {"status": "success", "data": {"id": "1"}}

    def test_get_without_body(self, transport, session):
        transport.send(RequestIntent(method="GET", path="/pluggrids?page=2"), "https://h", 5)
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://h/pluggrids?page=2")
        assert "json" not in kwargs
        assert "files" not in kwargs

    def test_multipart_body(self, transport, session):
        files = (("file", ("file.png", b"\x89PNG", "image/png")),)
        intent = RequestIntent(method="POST", path="/query", body={"model": "m"}, files=files)
        transport.send(intent, "https://h", 5)

        kwargs = session.request.call_args.kwargs
        assert kwargs["data"] == {"model": "m"}
        assert kwargs["files"] == [("file", ("file.png", b"\x89PNG", "image/png"))]
        assert "json" not in kwargs

    def test_headers_copied(self, transport):
        response = transport.send(RequestIntent(method="GET", path="/x"), "https://h", 5)
        assert response.header("content-type") == "application/json"
        assert response.header("X-Missing") is None


# ---------------------------------------------------------------------------
# Class: failure mapping
# ---------------------------------------------------------------------------

class TestFailures:

    def test_error_status_carries_response(self, transport, session):
        session.request.return_value = _fake_response(
            503, payload={"message": "down"}, headers={"Retry-After": "2"}
        )
        intent = RequestIntent(method="POST", path="/query")
        with pytest.raises(TransportFailure) as exc_info:
            transport.send(intent, "https://h", 5)

        failure = exc_info.value
        assert failure.status == 503
        assert failure.response.body == {"message": "down"}
        assert failure.response.header("retry-after") == "2"
        assert failure.request is intent
        assert failure.dispatched

    @pytest.mark.parametrize("exc", [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("timed out"),
        requests.exceptions.ChunkedEncodingError("broken"),
    ])
    def test_network_errors(self, transport, session, exc):
        session.request.side_effect = exc
        with pytest.raises(TransportFailure) as exc_info:
            transport.send(RequestIntent(method="GET", path="/x"), "https://h", 5)

        assert exc_info.value.response is None
        assert exc_info.value.dispatched
        assert exc_info.value.__cause__ is exc

    @pytest.mark.parametrize("exc", [
        requests.exceptions.MissingSchema("no scheme"),
        requests.exceptions.InvalidURL("bad url"),
    ])
    def test_setup_errors_not_dispatched(self, transport, session, exc):
        session.request.side_effect = exc
        with pytest.raises(TransportFailure) as exc_info:
            transport.send(RequestIntent(method="GET", path="/x"), "nowhere", 5)

        assert exc_info.value.response is None
        assert not exc_info.value.dispatched


# ---------------------------------------------------------------------------
# Class: body decoding and lifecycle
# ---------------------------------------------------------------------------

class TestHelpers:

    def test_decode_json(self):
        assert decode_body(_fake_response(payload={"a": 1})) == {"a": 1}

    def test_decode_text(self):
        assert decode_body(_fake_response(text="plain")) == "plain"

    def test_decode_empty(self):
        assert decode_body(_fake_response()) is None

    def test_failure_status_without_response(self):
        assert TransportFailure("x").status is None

    def test_response_header_lookup(self):
        response = TransportResponse(status=200, headers={"X-Request-Id": "abc"})
        assert response.header("x-request-id") == "abc"

    def test_close_releases_session(self, transport, session):
        transport.close()
        session.close.assert_called_once()
        transport.close()
        session.close.assert_called_once()

    def test_lazy_session(self):
        transport = RequestsTransport()
        assert isinstance(transport.session, requests.Session)
        assert transport.session is transport.session
        transport.close()
