"""
Data records shared across the query client modules.

Request-side records (``RequestIntent``, ``PluggridConfig``, ``Attachment``)
describe what goes over the wire; result-side records (``QueryResult``,
``TokenUsage``) are built once per successful call and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .config import (
    DEFAULT_API_URL,
    DEFAULT_INPUT_ENCODING,
    DEFAULT_OUTPUT_ENCODING,
    DEFAULT_RETRY_CONFIG,
    DEFAULT_TIMEOUT_SECONDS,
)


# ---------------------------------------------------------------------------
# Retry configuration
# ---------------------------------------------------------------------------

RETRY_CONFIG_ALIASES: dict[str, str] = {
    "maxRetries": "max_retries",
    "initialDelay": "initial_delay",
    "backoffFactor": "backoff_factor",
    "maxDelay": "max_delay",
    "retryStatusCodes": "retry_status_codes",
    "retryCondition": "retry_condition",
}


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounds and pacing for automatic retries of one logical call.

    ``max_retries`` counts retries, not attempts: a policy with
    ``max_retries=3`` dispatches at most 4 times.  Delays are in seconds.
    ``retry_condition`` receives the :class:`~query_client.transport.TransportFailure`
    of a failed attempt and may force a retry the status list would not.
    """

    max_retries: int = DEFAULT_RETRY_CONFIG["max_retries"]
    initial_delay: float = DEFAULT_RETRY_CONFIG["initial_delay"]
    backoff_factor: float = DEFAULT_RETRY_CONFIG["backoff_factor"]
    max_delay: float = DEFAULT_RETRY_CONFIG["max_delay"]
    retry_status_codes: frozenset[int] = DEFAULT_RETRY_CONFIG["retry_status_codes"]
    retry_condition: Optional[Callable[[Any], bool]] = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("initial_delay and max_delay must be non-negative")
        # Accept any iterable of ints from callers
        object.__setattr__(self, "retry_status_codes", frozenset(self.retry_status_codes))

    @classmethod
    def from_config(cls, overrides: dict | None = None) -> "RetryPolicy":
        """
        Build a policy from ``DEFAULT_RETRY_CONFIG`` with caller keys applied on top.

        Args:
            overrides: Partial retry config.  camelCase keys (``maxRetries``,
                ``retryStatusCodes``, ...) are accepted; unknown keys raise
                ``TypeError``.

        Returns:
            A fully populated :class:`RetryPolicy`.
        """
        overrides = {
            RETRY_CONFIG_ALIASES.get(key, key): value
            for key, value in (overrides or {}).items()
        }
        merged = {**DEFAULT_RETRY_CONFIG, **overrides}
        return cls(**merged)


@dataclass(frozen=True)
class RetryMeta:
    """Attempt bookkeeping attached to every classified error."""

    attempt: int
    max_attempts: int
    after: Optional[float] = None


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientConfiguration:
    """
    Settings fixed when the client is built.

    Instances are immutable.  ``QueryClient.set_token`` and
    ``QueryClient.clear_token`` swap in a copy that differs only in
    ``api_token``.
    """

    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    api_token: Optional[str] = None
    default_model: Optional[str] = None
    default_input_encoding: str = DEFAULT_INPUT_ENCODING
    default_output_encoding: str = DEFAULT_OUTPUT_ENCODING
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestIntent:
    """
    One HTTP call, fully composed.

    ``path`` already carries the query string.  ``body`` is the JSON body, or
    the plain form fields when ``files`` is set (multipart framing).  The
    same intent is re-sent unchanged on every retry.
    """

    method: str
    path: str
    body: Any = None
    files: Optional[tuple] = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_multipart(self) -> bool:
        return self.files is not None


@dataclass
class PluggridConfig:
    """A pluggrid reference: identifier plus optional version and settings."""

    id: str
    version: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    custom_instructions: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id}
        if self.version is not None:
            payload["version"] = self.version
        if self.config is not None:
            payload["config"] = self.config
        if self.custom_instructions is not None:
            payload["customInstructions"] = self.custom_instructions
        payload.update(self.extra)
        return payload


@dataclass(frozen=True)
class Attachment:
    """An extra file sent alongside the primary payload in a multipart body."""

    type: str
    data: Any
    filename: Optional[str] = None
    mime_type: Optional[str] = None


# ---------------------------------------------------------------------------
# Result side
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0
    cost: Optional[float] = None


@dataclass(frozen=True)
class QueryResult:
    """Decoded outcome of a successful ``query`` or ``raw_query`` call."""

    id: str
    result: Any
    model_used: Optional[str]
    token_usage: TokenUsage
    input_encoding: str
    output_encoding: str
    created_at: Optional[str]
    status_code: int
    response_headers: dict[str, str] = field(default_factory=dict)
    metadata: Optional[dict[str, Any]] = None
