"""
query_client — typed client for the plugged.in query API.

Module layout
-------------
config.py      — defaults, endpoints, encodings, MIME tables, parameter names
types.py       — RetryPolicy, ClientConfiguration, RequestIntent, QueryResult, ...
errors.py      — ApiError and its typed subclasses
encoding.py    — input encoding, multipart framing, output decoding
composer.py    — parameter validation, URL building, request composition
transport.py   — TransportResponse / TransportFailure, requests-based transport
classifier.py  — transport outcome → typed error
retry.py       — retry decisions, exponential backoff, retry loop
parser.py      — response envelope → QueryResult
client.py      — QueryClient facade

Public interface
----------------
Ask a question through a pluggrid:
    client = QueryClient(api_token="...")
    client.query("What is RAG?", "my-pluggrid")

Query a model directly:
    client.raw_query("Summarize this", {"model": "gpt-4o"})

Issue any other API call:
    client.request({"method": "GET", "endpoint": "/pluggrids"})
"""

from .client import QueryClient
from .errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from .retry import RetryController
from .transport import RequestsTransport, TransportFailure, TransportResponse
from .types import (
    Attachment,
    ClientConfiguration,
    PluggridConfig,
    QueryResult,
    RequestIntent,
    RetryMeta,
    RetryPolicy,
    TokenUsage,
)

__all__ = [
    # Client
    "QueryClient",
    # Errors
    "ApiError",
    "AuthenticationError",
    "NetworkError",
    "RateLimitError",
    "ServerError",
    "ValidationError",
    # Transport and retry
    "RequestsTransport",
    "RetryController",
    "TransportFailure",
    "TransportResponse",
    # Records
    "Attachment",
    "ClientConfiguration",
    "PluggridConfig",
    "QueryResult",
    "RequestIntent",
    "RetryMeta",
    "RetryPolicy",
    "TokenUsage",
]

__version__ = "1.0.0"
