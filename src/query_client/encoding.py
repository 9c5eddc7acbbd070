"""
Input encoding, multipart framing, and output decoding.

No I/O occurs here; all functions are pure transformations so they can be
unit tested without a transport.  The table-of-contents generator and the
MIME-to-extension lookup are deterministic in their inputs.
"""

from __future__ import annotations

import base64
import json
import re
from typing import Any

from .config import (
    BINARY_ENCODINGS,
    DEFAULT_EXTENSION,
    ENCODING_CONTENT_TYPES,
    INPUT_ENCODINGS,
    MIME_EXTENSIONS,
    OUTPUT_ENCODINGS,
)
from .errors import ApiError, ValidationError
from .types import Attachment

BYTES_TYPES = (bytes, bytearray, memoryview)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)

HTML_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Generated Content</title>
</head>
<body{class_attr}>
    {content}
</body>
</html>"""


# ---------------------------------------------------------------------------
# Small predicates and lookups
# ---------------------------------------------------------------------------

def is_bytes_like(value: Any) -> bool:
    return isinstance(value, BYTES_TYPES)


def is_plain_object(value: Any) -> bool:
    return type(value) is dict


def is_valid_input_encoding(encoding: Any) -> bool:
    return encoding in INPUT_ENCODINGS


def is_valid_output_encoding(encoding: Any) -> bool:
    return encoding in OUTPUT_ENCODINGS


def safe_json_parse(data: str) -> Any:
    """Parse JSON, returning ``None`` instead of raising on malformed input."""
    try:
        return json.loads(data)
    except (TypeError, ValueError):
        return None


def get_content_type(encoding: str, mime_type: str | None = None) -> str:
    """Return ``mime_type`` if given, else the default type for ``encoding``."""
    return mime_type or ENCODING_CONTENT_TYPES.get(encoding, "application/octet-stream")


def get_extension_from_mime_type(mime_type: str) -> str:
    """Map a MIME type to a filename extension; unknown types give ``bin``."""
    return MIME_EXTENSIONS.get(mime_type, DEFAULT_EXTENSION)


# ---------------------------------------------------------------------------
# Input side
# ---------------------------------------------------------------------------

def encode_input(
    payload: Any,
    encoding: str,
    mime_type: str | None = None,
    data_uri: bool = False,
) -> str:
    """
    Convert a prompt payload into its wire string.

    - ``text``: ``str(payload)``; bytes are rejected.
    - ``json``: strings pass through, anything else is serialized.
    - binary family (``image``, ``audio``, ``video``, ``binary``): payload
      must be bytes-like; the result is base64, optionally wrapped as a
      ``data:<mime>;base64,`` URI for JSON bodies.

    Args:
        payload: Prompt text, JSON-serializable object, or bytes.
        encoding: Declared input encoding.
        mime_type: MIME type for the data URI; defaults per encoding.
        data_uri: Wrap binary output in a data URI.

    Returns:
        Wire-ready string.

    Raises:
        ValidationError: Payload type does not match the encoding, or the
            object is not JSON-serializable.
        ApiError: ``encoding`` is not a supported input encoding.
    """
    if encoding in BINARY_ENCODINGS:
        if not is_bytes_like(payload):
            raise ValidationError(
                f"Invalid data type for {encoding} encoding: expected bytes, "
                f"got {type(payload).__name__}"
            )
        encoded = base64.b64encode(bytes(payload)).decode("ascii")
        if data_uri:
            return f"data:{get_content_type(encoding, mime_type)};base64,{encoded}"
        return encoded

    if encoding not in INPUT_ENCODINGS:
        raise ApiError(f"Unsupported encoding: {encoding}")

    if is_bytes_like(payload):
        raise ValidationError(f"Cannot use binary data with input encoding: {encoding}")

    if encoding == "text":
        return str(payload)

    # json
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Prompt is not JSON-serializable: {exc}") from exc


def payload_bytes(payload: Any, encoding: str) -> bytes:
    """
    Raw bytes for a multipart file part.

    Raises:
        ValidationError: Bytes declared as ``text`` or ``json``.
    """
    if is_bytes_like(payload):
        if encoding not in BINARY_ENCODINGS:
            raise ValidationError(f"Cannot use binary data with input encoding: {encoding}")
        return bytes(payload)
    return encode_input(payload, encoding).encode("utf-8")


def _coerce_attachment(item: Any) -> Attachment:
    if isinstance(item, Attachment):
        return item
    if isinstance(item, dict):
        return Attachment(
            type=item.get("type", "binary"),
            data=item.get("data"),
            filename=item.get("filename"),
            mime_type=item.get("mime_type") or item.get("mimeType"),
        )
    raise ValidationError(f"Invalid attachment: {item!r}")


def build_multipart(payload: Any, encoding: str, params: dict) -> list[tuple]:
    """
    Frame a payload and its attachments as multipart file parts.

    The primary payload goes under ``file``; attachment *i* under
    ``attachment-i``.  Filenames come from ``metadata["filename"]`` /
    ``Attachment.filename`` or are derived from the MIME type.

    Args:
        payload: Primary prompt payload.
        encoding: Declared input encoding of the payload.
        params: Call options; reads ``metadata`` and ``attachments``.

    Returns:
        List of ``(field, (filename, content, mime_type))`` tuples in the
        shape ``requests`` accepts for ``files=``.

    Raises:
        ValidationError: An attachment's data is neither ``str`` nor bytes.
    """
    metadata = params.get("metadata") or {}
    mime_type = get_content_type(
        encoding, metadata.get("mime_type") or metadata.get("mimeType")
    )
    filename = metadata.get("filename") or f"file.{get_extension_from_mime_type(mime_type)}"

    parts: list[tuple] = [("file", (filename, payload_bytes(payload, encoding), mime_type))]

    for index, item in enumerate(params.get("attachments") or []):
        attachment = _coerce_attachment(item)
        part_mime = get_content_type(attachment.type, attachment.mime_type)
        part_name = (
            attachment.filename
            or f"attachment-{index}.{get_extension_from_mime_type(part_mime)}"
        )
        if isinstance(attachment.data, str):
            content = attachment.data.encode("utf-8")
        elif is_bytes_like(attachment.data):
            content = bytes(attachment.data)
        else:
            raise ValidationError(
                f"Invalid attachment data format for attachment {index}"
            )
        parts.append((f"attachment-{index}", (part_name, content, part_mime)))

    return parts


# ---------------------------------------------------------------------------
# Output side
# ---------------------------------------------------------------------------

def extract_headings(markdown: str) -> list[dict]:
    """Return ``[{"level": int, "text": str}, ...]`` for each ATX heading line."""
    return [
        {"level": len(match.group(1)), "text": match.group(2).strip()}
        for match in HEADING_PATTERN.finditer(markdown)
    ]


def slugify_heading(text: str) -> str:
    """Anchor slug: lowercase, non-ASCII-word characters dropped, spaces to hyphens."""
    slug = re.sub(r"[^\w\s-]", "", text.lower(), flags=re.ASCII)
    return re.sub(r"\s+", "-", slug)


def generate_toc(headings: list[dict], min_level: int) -> str:
    """
    Render a nested markdown list linking to each heading.

    Headings shallower than ``min_level`` are skipped; each level deeper
    adds two spaces of indentation.
    """
    lines = []
    for heading in headings:
        level = heading["level"]
        if level < min_level:
            continue
        indent = "  " * (level - min_level)
        lines.append(f"{indent}- [{heading['text']}](#{slugify_heading(heading['text'])})\n")
    return "".join(lines)


def _option(options: dict | None, snake: str, camel: str, default: Any = None) -> Any:
    if not options:
        return default
    if snake in options:
        return options[snake]
    return options.get(camel, default)


def process_json_output(data: Any, options: dict | None = None) -> Any:  # noqa: ARG001
    """Return objects unchanged; parse JSON strings."""
    if isinstance(data, str):
        try:
            return json.loads(data)
        except ValueError as exc:
            raise ValidationError("Failed to parse response as JSON") from exc
    return data


def process_markdown_output(data: Any, options: dict | None = None) -> str:
    """Coerce to text; prepend a table of contents when ``toc`` is set."""
    markdown = str(data)
    if not _option(options, "toc", "toc"):
        return markdown

    min_level = _option(options, "header_level", "headerLevel") or 1
    toc = generate_toc(extract_headings(markdown), min_level)
    return toc + "\n\n" + markdown


def process_html_output(data: Any, options: dict | None = None) -> str:
    """
    Coerce to text and optionally wrap it.

    ``full_document`` wraps the fragment in a complete HTML skeleton;
    ``class_name`` alone wraps it in a ``<div>``.  Content that already
    contains ``<html`` is never wrapped.
    """
    html = str(data)
    if "<html" in html:
        return html

    class_name = _option(options, "class_name", "className")
    if _option(options, "full_document", "fullDocument"):
        class_attr = f' class="{class_name}"' if class_name else ""
        return HTML_DOCUMENT_TEMPLATE.format(class_attr=class_attr, content=html)
    if class_name:
        return f'<div class="{class_name}">{html}</div>'
    return html


def decode_output(data: Any, encoding: str, format_options: dict | None = None) -> Any:
    """
    Decode a result per the requested output encoding.

    Args:
        data: ``result`` field from the response envelope.
        encoding: Requested output encoding.
        format_options: Per-format options keyed by ``json``, ``markdown``
            and ``html``.

    Returns:
        Parsed JSON for ``json``, a string for everything else.
    """
    format_options = format_options or {}
    if encoding == "json":
        return process_json_output(data, format_options.get("json"))
    if encoding == "markdown":
        return process_markdown_output(data, format_options.get("markdown"))
    if encoding == "html":
        return process_html_output(data, format_options.get("html"))
    return str(data)
