"""
QueryClient: the entry point tying composition, dispatch, retry and decoding.

Each call runs the same stages in order and stops at the first failure:

    validate -> compose -> encode -> dispatch with retry -> decode

The bearer token is read once per call, when the request headers are built,
so replacing it while a call is retrying does not affect that call.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import replace
from typing import Any, Callable, Optional

from .composer import (
    build_url,
    compose_query,
    compose_raw_query,
    resolve_params,
    validate_params,
)
from .config import (
    API_TOKEN_ENV,
    API_URL_ENV,
    DEFAULT_API_URL,
    DEFAULT_HEADERS,
    DEFAULT_INPUT_ENCODING,
    DEFAULT_MODEL_ENV,
    DEFAULT_OUTPUT_ENCODING,
    DEFAULT_TIMEOUT_SECONDS,
    LOGGER_NAME,
    TIMEOUT_ENV,
)
from .errors import ApiError, AuthenticationError, ValidationError
from .parser import build_query_result, response_data
from .retry import RetryController
from .transport import RequestsTransport, TransportResponse
from .types import ClientConfiguration, PluggridConfig, QueryResult, RequestIntent, RetryPolicy

lib_logger = logging.getLogger(LOGGER_NAME)

MISSING_TOKEN_MESSAGE = "API token not set. Please set a token before making requests."


def mask_credential(token: str | None) -> str:
    """Show only the first four characters of a credential."""
    if not token:
        return "<none>"
    return token[:4] + "..."


class QueryClient:
    """
    Client for the query service.

    Args:
        api_url: Base URL of the service.
        api_token: Bearer token; may be set later with :meth:`set_token`.
        timeout: Per-attempt timeout in seconds.
        default_model: Model used when a call does not name one.
        default_input_encoding: Input encoding used when a call does not name one.
        default_output_encoding: Output encoding used when a call does not name one.
        retry_config: Partial retry settings merged over the defaults, or a
            ready :class:`RetryPolicy`.
        transport: Object with ``send(intent, base_url, timeout)``; defaults
            to :class:`RequestsTransport`.
        sleep: Wait function used between retries.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        api_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        default_model: Optional[str] = None,
        default_input_encoding: str = DEFAULT_INPUT_ENCODING,
        default_output_encoding: str = DEFAULT_OUTPUT_ENCODING,
        retry_config: dict | RetryPolicy | None = None,
        transport: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        policy = (
            retry_config
            if isinstance(retry_config, RetryPolicy)
            else RetryPolicy.from_config(retry_config)
        )
        validate_params({
            "input_encoding": default_input_encoding,
            "output_encoding": default_output_encoding,
        })
        self.config = ClientConfiguration(
            api_url=api_url or DEFAULT_API_URL,
            timeout=timeout or DEFAULT_TIMEOUT_SECONDS,
            api_token=api_token or None,
            default_model=default_model or None,
            default_input_encoding=default_input_encoding,
            default_output_encoding=default_output_encoding,
            retry_policy=policy,
        )
        self.transport = transport if transport is not None else RequestsTransport()
        self._retry = RetryController(policy, sleep=sleep)

    @classmethod
    def from_env(cls, **overrides: Any) -> "QueryClient":
        """
        Build a client from ``PLUGGEDIN_*`` environment variables.

        Keyword arguments override the environment.
        """
        settings: dict[str, Any] = {
            "api_url": os.getenv(API_URL_ENV) or DEFAULT_API_URL,
            "api_token": os.getenv(API_TOKEN_ENV),
            "default_model": os.getenv(DEFAULT_MODEL_ENV),
        }
        timeout = os.getenv(TIMEOUT_ENV)
        if timeout:
            try:
                settings["timeout"] = float(timeout)
            except ValueError as exc:
                raise ValidationError(
                    f"{TIMEOUT_ENV} must be a number of seconds, got {timeout!r}"
                ) from exc
        settings.update(overrides)
        return cls(**settings)

    # ------------------------------------------------------------------
    # Credential lifecycle
    # ------------------------------------------------------------------

    @property
    def api_token(self) -> Optional[str]:
        return self.config.api_token

    def set_token(self, token: str) -> None:
        """Replace the bearer token used by subsequent calls."""
        self.config = replace(self.config, api_token=token)
        lib_logger.debug("API token set (%s)", mask_credential(token))

    def clear_token(self) -> None:
        """Remove the bearer token; calls fail until a new one is set."""
        self.config = replace(self.config, api_token=None)
        lib_logger.debug("API token cleared")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _authorized(self, intent: RequestIntent) -> RequestIntent:
        token = self.config.api_token
        if not token:
            raise AuthenticationError(MISSING_TOKEN_MESSAGE)
        lib_logger.debug("%s %s (token %s)", intent.method, intent.path, mask_credential(token))
        headers = {**DEFAULT_HEADERS, **intent.headers, "Authorization": f"Bearer {token}"}
        return replace(intent, headers=headers)

    def _dispatch(self, intent: RequestIntent) -> TransportResponse:
        """Send an intent with retries; every failure leaves as an ApiError."""
        intent = self._authorized(intent)

        def send() -> TransportResponse:
            return self.transport.send(intent, self.config.api_url, self.config.timeout)

        try:
            return self._retry.run(send, label=f"{intent.method} {intent.path}")
        except ApiError:
            raise
        except Exception as exc:
            raise ApiError(str(exc) or type(exc).__name__, 0, {"original": exc}) from exc

    def request(self, config: RequestIntent | dict) -> dict:
        """
        Perform an arbitrary API request.

        Args:
            config: A composed :class:`RequestIntent`, or a dict with
                ``endpoint`` and optional ``method`` (default ``GET``),
                ``params`` (query string), ``data`` (JSON body) and ``headers``.

        Returns:
            The response envelope with ``status_code`` and ``headers`` added.

        Raises:
            AuthenticationError: No token is set (nothing is sent).
            ValidationError: ``params`` are malformed (nothing is sent).
            ApiError: The classified failure of the last attempt.
        """
        if not self.config.api_token:
            raise AuthenticationError(MISSING_TOKEN_MESSAGE)

        if isinstance(config, RequestIntent):
            intent = config
        else:
            if not isinstance(config, dict) or not config.get("endpoint"):
                raise ValidationError("Request config must include an endpoint")
            params = config.get("params")
            if params is not None:
                validate_params(params)
            intent = RequestIntent(
                method=(config.get("method") or "GET").upper(),
                path=build_url(config["endpoint"], params),
                body=config.get("data"),
                headers=dict(config.get("headers") or {}),
            )

        return response_data(self._dispatch(intent))

    def _decode(self, response: TransportResponse, merged: dict) -> QueryResult:
        """Build the result; faults other than ApiError leave as an ApiError."""
        try:
            return build_query_result(
                response,
                merged["input_encoding"],
                merged["output_encoding"],
                merged.get("format_options"),
            )
        except ApiError:
            raise
        except Exception as exc:
            raise ApiError(str(exc) or type(exc).__name__, 0, {"original": exc}) from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        prompt: Any,
        pluggrid: str | dict | PluggridConfig | None = None,
        custom_instructions: str | None = None,
        params: dict | None = None,
    ) -> QueryResult:
        """
        Ask the service a question through a pluggrid.

        Args:
            prompt: Text, a JSON object (with ``input_encoding="json"``), or
                bytes (with a binary input encoding).
            pluggrid: Pluggrid identifier or configuration.
            custom_instructions: Instructions layered onto the pluggrid.
            params: Call options such as ``model``, ``input_encoding``,
                ``output_encoding``, ``format_options``, ``temperature``,
                ``max_tokens``, ``attachments``, ``metadata``.

        Returns:
            The decoded :class:`QueryResult`.

        Raises:
            ValidationError: Caller input rejected before dispatch, or a
                ``json`` result that does not parse.
            AuthenticationError: No token is set.
            ApiError: Any classified transport failure.
        """
        intent = compose_query(self.config, prompt, pluggrid, custom_instructions, params)
        merged = resolve_params(self.config, params)
        return self._decode(self._dispatch(intent), merged)

    def raw_query(self, prompt: Any, options: dict | None = None) -> QueryResult:
        """
        Query a model directly, without pluggrid mediation.

        Args:
            prompt: Text, a JSON object, or bytes.
            options: Call options; ``model`` is required unless the client
                has a default model.  Accepts ``custom_instructions`` plus
                everything :meth:`query` accepts in ``params``.

        Returns:
            The decoded :class:`QueryResult`.

        Raises:
            ValidationError: Missing model or otherwise invalid input.
            AuthenticationError: No token is set.
            ApiError: Any classified transport failure.
        """
        intent = compose_raw_query(self.config, prompt, options)
        merged = resolve_params(self.config, options)
        return self._decode(self._dispatch(intent), merged)

    # ------------------------------------------------------------------
    # Resource management
    # ------------------------------------------------------------------

    def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "QueryClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
