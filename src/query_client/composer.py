"""
Parameter validation, default merging, URL building, and request composition.

Composition never touches the network: every function here either returns
a :class:`RequestIntent` (or a piece of one) or raises
:class:`ValidationError` describing what the caller got wrong.

Design notes:
- Option bags are plain dicts.  Well-known keys use snake_case and are
  translated to the wire's camelCase through ``PARAM_MAPPING``; unknown
  keys travel unchanged.  Call-level options override client defaults.
- A bare pluggrid identifier is normalized to ``{"id": ...}`` and custom
  instructions are attached to it (creating ``{"id": ""}`` if needed).
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urlencode

from .config import (
    BINARY_ENCODINGS,
    MULTIPART_EXCLUDED_PARAMS,
    NESTED_MAPPED_PARAMS,
    PARAM_MAPPING,
    QUERY_ENDPOINT,
    RAW_QUERY_ENDPOINT,
    WIRE_TO_PARAM,
)
from .encoding import (
    build_multipart,
    encode_input,
    is_bytes_like,
    is_valid_input_encoding,
    is_valid_output_encoding,
)
from .errors import ValidationError
from .types import ClientConfiguration, PluggridConfig, RequestIntent


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _pluggrid_id(pluggrid: Any) -> Any:
    if isinstance(pluggrid, PluggridConfig):
        return pluggrid.id
    return pluggrid.get("id")


def validate_params(params: Any, require_pluggrid_id: bool = True) -> None:
    """
    Reject malformed request parameters before anything is sent.

    Args:
        params: Parameter dict to check.
        require_pluggrid_id: Whether a present ``pluggrid`` must carry a
            non-empty ``id``.

    Raises:
        ValidationError: On the first rule violated.
    """
    if not isinstance(params, dict):
        raise ValidationError("Parameters must be an object")

    query = params.get("query")
    if query is not None:
        if not isinstance(query, str):
            raise ValidationError("Query parameter must be a string")
        if query == "":
            raise ValidationError("Query parameter cannot be empty")

    pluggrid = params.get("pluggrid")
    if pluggrid is not None:
        if not isinstance(pluggrid, (dict, PluggridConfig)):
            raise ValidationError("Pluggrid parameter must be an object")
        if require_pluggrid_id and not _pluggrid_id(pluggrid):
            raise ValidationError("Pluggrid id is required")

    for key in ("input_encoding", "inputEncoding"):
        value = params.get(key)
        if value and not is_valid_input_encoding(value):
            raise ValidationError(f"Invalid input encoding: {value}")

    for key in ("output_encoding", "outputEncoding"):
        value = params.get(key)
        if value and not is_valid_output_encoding(value):
            raise ValidationError(f"Invalid output encoding: {value}")

    metadata = params.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("Metadata parameter must be an object")

    attachments = params.get("attachments")
    if attachments is not None and not isinstance(attachments, (list, tuple)):
        raise ValidationError("Attachments parameter must be a list")


def validate_prompt(prompt: Any) -> None:
    if prompt is None:
        raise ValidationError("Prompt is required")
    if isinstance(prompt, str) or is_bytes_like(prompt):
        if len(prompt) == 0:
            raise ValidationError("Prompt is required")


# ---------------------------------------------------------------------------
# URL building
# ---------------------------------------------------------------------------

def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_url(endpoint: str, params: dict | None = None) -> str:
    """
    Append ``params`` to ``endpoint`` as a query string.

    ``None`` values are omitted; dicts and lists are JSON-serialized before
    percent-encoding.  Only path and query are returned; the host is bound
    by the transport.

    Args:
        endpoint: API path, e.g. ``"/query"``.
        params: Flat mapping of query parameters.

    Returns:
        ``path`` or ``path?query``.
    """
    path = endpoint if endpoint.startswith("/") else "/" + endpoint
    if not params:
        return path

    pairs = [(key, _query_value(value)) for key, value in params.items() if value is not None]
    if not pairs:
        return path

    separator = "&" if "?" in path else "?"
    return path + separator + urlencode(pairs)


# ---------------------------------------------------------------------------
# Option handling
# ---------------------------------------------------------------------------

def _map_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {PARAM_MAPPING.get(key, key): _map_keys(item) for key, item in value.items()}
    return value


def to_wire_params(params: dict) -> dict:
    """
    Translate snake_case option names into wire names, dropping ``None`` values.

    Nested option objects (``format_options``, ``context``) have their keys
    translated as well.
    """
    wire: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if key in NESTED_MAPPED_PARAMS:
            value = _map_keys(value)
        elif key == "pluggrid" and isinstance(value, PluggridConfig):
            value = value.to_wire()
        wire[PARAM_MAPPING.get(key, key)] = value
    return wire


def resolve_params(config: ClientConfiguration, params: dict | None = None) -> dict:
    """
    Merge client defaults under call-level options.

    Wire-name keys (``outputEncoding``, ``maxTokens``, ...) are folded onto
    their snake_case names first; when a call gives both spellings the
    snake_case one wins.

    Returns a new dict holding at least ``input_encoding`` and
    ``output_encoding``, plus ``model`` when either side supplies one.
    """
    merged: dict[str, Any] = {
        "input_encoding": config.default_input_encoding,
        "output_encoding": config.default_output_encoding,
    }
    if config.default_model:
        merged["model"] = config.default_model

    params = params or {}
    for key, value in params.items():
        if value is None:
            continue
        name = WIRE_TO_PARAM.get(key, key)
        if name != key and params.get(name) is not None:
            continue
        merged[name] = value
    return merged


def normalize_pluggrid(
    pluggrid: str | dict | PluggridConfig | None,
    custom_instructions: str | None = None,
) -> dict | None:
    """
    Turn a pluggrid reference into its wire object.

    Args:
        pluggrid: Bare identifier, config dict, or :class:`PluggridConfig`.
        custom_instructions: Attached as ``customInstructions``.

    Returns:
        Wire dict, or ``None`` when neither argument is given.
    """
    if isinstance(pluggrid, PluggridConfig):
        result: dict | None = pluggrid.to_wire()
    elif isinstance(pluggrid, str):
        result = {"id": pluggrid} if pluggrid else None
    elif isinstance(pluggrid, dict):
        result = _map_keys(pluggrid)
    elif pluggrid is None:
        result = None
    else:
        raise ValidationError("Pluggrid parameter must be an object")

    if custom_instructions:
        if result is None:
            result = {"id": ""}
        result["customInstructions"] = custom_instructions
    return result


def wants_multipart(params: dict) -> bool:
    """True when attachments or explicit MIME metadata accompany the payload."""
    if params.get("attachments"):
        return True
    metadata = params.get("metadata") or {}
    return bool(metadata.get("mime_type") or metadata.get("mimeType"))


def _form_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _form_fields(wire: dict) -> dict[str, str]:
    return {
        key: _form_value(value)
        for key, value in wire.items()
        if key not in MULTIPART_EXCLUDED_PARAMS
    }


def _encode_prompt(prompt: Any, params: dict) -> str:
    encoding = params["input_encoding"]
    metadata = params.get("metadata") or {}
    mime_type = metadata.get("mime_type") or metadata.get("mimeType")
    return encode_input(
        prompt,
        encoding,
        mime_type=mime_type,
        data_uri=encoding in BINARY_ENCODINGS,
    )


def _json_intent(endpoint: str, body: dict) -> RequestIntent:
    return RequestIntent(
        method="POST",
        path=endpoint,
        body=body,
        headers={"Content-Type": "application/json"},
    )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def compose_query(
    config: ClientConfiguration,
    prompt: Any,
    pluggrid: str | dict | PluggridConfig | None = None,
    custom_instructions: str | None = None,
    params: dict | None = None,
) -> RequestIntent:
    """
    Build the request for a pluggrid-mediated query.

    Args:
        config: Client configuration supplying defaults.
        prompt: Text, JSON object, or bytes.
        pluggrid: Pluggrid identifier or configuration.
        custom_instructions: Overrides attached to the pluggrid.
        params: Call-level options (snake_case keys).

    Returns:
        A JSON-body intent, or a multipart intent when attachments or MIME
        metadata are present.

    Raises:
        ValidationError: Empty prompt, bad encodings, malformed pluggrid, or
            a payload that does not match its input encoding.
    """
    validate_prompt(prompt)
    if params is not None and not isinstance(params, dict):
        raise ValidationError("Parameters must be an object")

    merged = resolve_params(config, params)
    pluggrid_wire = normalize_pluggrid(
        pluggrid if pluggrid is not None else merged.pop("pluggrid", None),
        custom_instructions,
    )
    merged.pop("pluggrid", None)
    if pluggrid_wire is not None:
        merged["pluggrid"] = pluggrid_wire
    validate_params(merged, require_pluggrid_id=False)

    encoding = merged["input_encoding"]
    if wants_multipart(merged):
        files = build_multipart(prompt, encoding, merged)
        return RequestIntent(
            method="POST",
            path=QUERY_ENDPOINT,
            body=_form_fields(to_wire_params(merged)),
            files=tuple(files),
        )

    body = {"query": _encode_prompt(prompt, merged)}
    body.update(to_wire_params(merged))
    body.pop("attachments", None)
    return _json_intent(QUERY_ENDPOINT, body)


def compose_raw_query(
    config: ClientConfiguration,
    prompt: Any,
    options: dict | None,
) -> RequestIntent:
    """
    Build the request for a direct model query (no pluggrid).

    Args:
        config: Client configuration supplying defaults.
        prompt: Text, JSON object, or bytes.
        options: Call options; ``model`` is required unless the client has
            a default model.

    Returns:
        A JSON-body or multipart intent for the raw query endpoint.

    Raises:
        ValidationError: Missing model, empty prompt, bad encodings, or an
            encoding/payload mismatch.
    """
    validate_prompt(prompt)
    if options is not None and not isinstance(options, dict):
        raise ValidationError("Options must be an object")

    merged = resolve_params(config, options)
    if not merged.get("model"):
        raise ValidationError("Model is required for raw queries")
    merged.pop("pluggrid", None)
    validate_params(merged)

    encoding = merged["input_encoding"]
    if wants_multipart(merged):
        files = build_multipart(prompt, encoding, merged)
        return RequestIntent(
            method="POST",
            path=RAW_QUERY_ENDPOINT,
            body=_form_fields(to_wire_params(merged)),
            files=tuple(files),
        )

    body = {"prompt": _encode_prompt(prompt, merged)}
    body.update(to_wire_params(merged))
    body.pop("attachments", None)
    body.pop("metadata", None)
    return _json_intent(RAW_QUERY_ENDPOINT, body)
