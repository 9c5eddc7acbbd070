"""
Client defaults, enumerated encodings, MIME tables, and wire parameter names.

All constants used across the query_client modules are centralized here so
that configuration is separated from logic.  Durations are in seconds.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "https://api.plugged.in"

# Pluggrid-mediated query endpoint and direct model query endpoint
QUERY_ENDPOINT = "/query"
RAW_QUERY_ENDPOINT = "/ai/query"

DEFAULT_TIMEOUT_SECONDS: float = 30.0

# ---------------------------------------------------------------------------
# Environment variables (read only by QueryClient.from_env)
# ---------------------------------------------------------------------------

API_TOKEN_ENV = "PLUGGEDIN_API_TOKEN"
API_URL_ENV = "PLUGGEDIN_API_URL"
DEFAULT_MODEL_ENV = "PLUGGEDIN_DEFAULT_MODEL"
TIMEOUT_ENV = "PLUGGEDIN_TIMEOUT"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOGGER_NAME = "query_client"

# ---------------------------------------------------------------------------
# Retry defaults
# ---------------------------------------------------------------------------

DEFAULT_RETRY_CONFIG: dict = {
    "max_retries": 3,
    "initial_delay": 1.0,    # seconds before the first retry
    "backoff_factor": 2.0,   # delay multiplier per retry
    "max_delay": 30.0,       # ceiling on any single wait
    "retry_status_codes": frozenset({408, 429, 500, 502, 503, 504}),
}

# ---------------------------------------------------------------------------
# Encodings
# ---------------------------------------------------------------------------

INPUT_ENCODINGS: tuple[str, ...] = ("text", "json", "image", "audio", "video", "binary")
OUTPUT_ENCODINGS: tuple[str, ...] = (
    "text", "json", "audio", "image", "markdown", "html", "xml",
)

# Input encodings that must be backed by raw bytes
BINARY_ENCODINGS: frozenset[str] = frozenset({"image", "audio", "video", "binary"})

DEFAULT_INPUT_ENCODING = "text"
DEFAULT_OUTPUT_ENCODING = "text"

# Content type assumed for each input encoding when no MIME type is given
ENCODING_CONTENT_TYPES: dict[str, str] = {
    "text": "text/plain",
    "json": "application/json",
    "image": "image/jpeg",
    "audio": "audio/mpeg",
    "video": "video/mp4",
    "binary": "application/octet-stream",
}

# Filename extension per MIME type; anything unlisted falls back to "bin"
MIME_EXTENSIONS: dict[str, str] = {
    "text/plain": "txt",
    "application/json": "json",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "audio/mp3": "mp3",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
    "video/mp4": "mp4",
    "video/mpeg": "mpeg",
    "application/pdf": "pdf",
    "application/octet-stream": "bin",
    "text/markdown": "md",
    "text/html": "html",
    "application/xml": "xml",
}
DEFAULT_EXTENSION = "bin"

# ---------------------------------------------------------------------------
# Parameter mapping: Python option names -> wire (camelCase) names
# Keys not listed here are sent unchanged.
# ---------------------------------------------------------------------------

PARAM_MAPPING: dict[str, str] = {
    "input_encoding": "inputEncoding",
    "output_encoding": "outputEncoding",
    "format_options": "formatOptions",
    "max_tokens": "maxTokens",
    "custom_instructions": "customInstructions",
    "conversation_id": "conversationId",
    "previous_messages": "previousMessages",
    "header_level": "headerLevel",
    "full_document": "fullDocument",
    "class_name": "className",
    "mime_type": "mimeType",
}

# Reverse lookup so callers may spell options either way
WIRE_TO_PARAM: dict[str, str] = {wire: name for name, wire in PARAM_MAPPING.items()}

# Options whose values travel as nested objects whose keys are mapped too
NESTED_MAPPED_PARAMS: frozenset[str] = frozenset({"format_options", "context"})

# Options framed as file parts in multipart bodies; never sent as form fields
MULTIPART_EXCLUDED_PARAMS: frozenset[str] = frozenset({"attachments", "metadata"})

DEFAULT_HEADERS: dict[str, str] = {"Accept": "application/json"}
