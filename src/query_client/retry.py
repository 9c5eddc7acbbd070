"""
Retry decisions, exponential backoff, and the per-call retry loop.

Attempts of one logical call are strictly sequential: attempt n+1 starts
only after attempt n has failed, been classified, and its backoff wait has
elapsed.  The same composed request is re-sent on every attempt; nothing is
re-encoded.  Two calls never share retry state.

Backoff for retry n (0-based):

    delay(n) = min(initial_delay * backoff_factor ** n, max_delay)

raised to the server's ``Retry-After`` hint when that is larger.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .classifier import classify, retry_after_hint
from .config import LOGGER_NAME
from .transport import TransportFailure
from .types import RetryPolicy

lib_logger = logging.getLogger(LOGGER_NAME)

T = TypeVar("T")


class RetryController:
    """
    Drives one call through ``Attempting -> Deciding -> Waiting`` until it
    succeeds or the last allowed attempt fails.

    Args:
        policy: Retry limits and pacing.
        sleep: Blocking wait function; injected by tests.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def should_retry(self, failure: TransportFailure, attempt: int) -> bool:
        """
        Decide whether a failed attempt is retried.

        Args:
            failure: Outcome of the attempt that just failed.
            attempt: 0-based retry count so far.

        Returns:
            ``True`` if another attempt should be made.
        """
        if attempt >= self.policy.max_retries:
            return False

        # Sent but never answered
        if failure.response is None and failure.dispatched:
            return True

        if failure.status is not None and failure.status in self.policy.retry_status_codes:
            return True

        condition = self.policy.retry_condition
        if condition is not None and condition(failure):
            return True

        return False

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        """
        Return the wait in seconds before retry ``attempt`` (0-based).

        Args:
            attempt: 0-based retry count so far.
            retry_after: Server-supplied minimum wait in seconds.

        Returns:
            Seconds to wait.
        """
        policy = self.policy
        delay = min(
            policy.initial_delay * policy.backoff_factor ** attempt,
            policy.max_delay,
        )
        if retry_after is not None and retry_after > delay:
            return retry_after
        return delay

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, send: Callable[[], T], label: str = "request") -> T:
        """
        Call ``send`` until it returns or retries are exhausted.

        Args:
            send: Performs one attempt; raises :class:`TransportFailure`
                on failure.
            label: Short description used in log lines.

        Returns:
            Whatever ``send`` returned on the successful attempt.

        Raises:
            ApiError: Classified error of the final failed attempt.
        """
        attempt = 0
        max_retries = self.policy.max_retries

        while True:
            try:
                return send()
            except TransportFailure as failure:
                error = classify(failure, attempt, max_retries)
                lib_logger.warning(
                    "%s: attempt %d/%d failed [%s]: %s",
                    label,
                    attempt + 1,
                    max_retries + 1,
                    error.kind,
                    error.message[:120],
                )

                if not self.should_retry(failure, attempt):
                    raise error from failure

                wait = self.delay_for(attempt, retry_after_hint(failure.response))
                lib_logger.info("%s: retrying in %.2fs", label, wait)
                self._sleep(wait)
                attempt += 1


def run_with_retry(
    send: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Convenience wrapper: one-off :class:`RetryController` run."""
    return RetryController(policy, sleep=sleep).run(send)

