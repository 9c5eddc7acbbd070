"""
Response envelope parsing into :class:`QueryResult`.

The service answers either with an envelope
``{"status", "data": {...}, "message", "meta"}`` or with the result fields
at the top level.  Token usage may arrive camelCase (``promptTokens``) or
snake_case (``prompt_tokens``).
"""

from __future__ import annotations

from typing import Any

from .encoding import decode_output
from .errors import ApiError, ValidationError
from .transport import TransportResponse
from .types import QueryResult, TokenUsage

INVALID_RESPONSE_MESSAGE = "Invalid response received from the server"


def response_data(response: TransportResponse) -> dict:
    """
    Return the envelope dict plus ``status_code`` and ``headers``.

    Non-dict bodies are wrapped as ``{"data": body}``.
    """
    body = response.body
    envelope = dict(body) if isinstance(body, dict) else {"data": body}
    envelope["status_code"] = response.status
    envelope["headers"] = dict(response.headers)
    return envelope


def extract_result_payload(envelope: dict) -> dict:
    """
    Locate the result fields inside an envelope.

    Raises:
        ApiError: Neither a ``data`` object nor top-level ``result`` is present.
    """
    data = envelope.get("data")
    if isinstance(data, dict) and data:
        return data
    if "result" in envelope:
        return envelope
    raise ApiError(
        INVALID_RESPONSE_MESSAGE,
        0,
        {"message": "Response data is missing or malformed"},
    )


def _first(mapping: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return default


def parse_token_usage(usage: Any) -> TokenUsage:
    """
    Read token counts from a usage object.

    Counts sent as numeric strings are accepted.

    Raises:
        ValidationError: A count or the cost is not numeric.
    """
    if not isinstance(usage, dict):
        return TokenUsage()
    try:
        prompt = int(_first(usage, "promptTokens", "prompt_tokens", default=0))
        completion = int(_first(usage, "completionTokens", "completion_tokens", default=0))
        total = _first(usage, "totalTokens", "total_tokens")
        total = prompt + completion if total is None else int(total)
        cost = usage.get("cost")
        cost = None if cost is None else float(cost)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Malformed token usage in response: {exc}",
            data={"usage": usage},
        ) from exc
    return TokenUsage(prompt=prompt, completion=completion, total=total, cost=cost)


def build_query_result(
    response: TransportResponse,
    input_encoding: str,
    output_encoding: str,
    format_options: dict | None = None,
) -> QueryResult:
    """
    Decode a successful query response.

    Args:
        response: The 2xx transport response.
        input_encoding: Encoding the prompt was sent with (fallback when the
            server does not echo it).
        output_encoding: Requested output encoding; drives decoding.
        format_options: Per-format decoding options.

    Returns:
        The immutable :class:`QueryResult`.

    Raises:
        ApiError: Envelope is missing its result data.
        ValidationError: ``json`` output that does not parse.
    """
    payload = extract_result_payload(response_data(response))

    result = payload.get("result")
    if result is not None and result != "":
        result = decode_output(result, output_encoding, format_options)

    return QueryResult(
        id="" if payload.get("id") is None else str(payload["id"]),
        result=result,
        model_used=_first(payload, "model", "modelUsed"),
        token_usage=parse_token_usage(_first(payload, "usage", "tokenUsage")),
        input_encoding=payload.get("inputEncoding") or input_encoding,
        output_encoding=payload.get("outputEncoding") or output_encoding,
        created_at=_first(payload, "createdAt", "created_at"),
        status_code=response.status,
        response_headers=dict(response.headers),
        metadata=payload.get("metadata"),
    )
