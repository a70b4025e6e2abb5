# g2a_integration/resilience/retry_policies.py
"""
Retry with exponential backoff and jitter, driven by per-error-code policies.
"""

import asyncio
import random
import time
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from g2a_integration.config import RetrySettings
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.utils.error_mapper import ErrorMapper

logger = get_logger(__name__)

T = TypeVar('T')

NON_RETRYABLE_CODES = (
    G2AErrorCode.AUTH_FAILED,
    G2AErrorCode.TOKEN_EXPIRED,
    G2AErrorCode.INVALID_CREDENTIALS,
    G2AErrorCode.PRODUCT_NOT_FOUND,
    G2AErrorCode.ORDER_NOT_FOUND,
    G2AErrorCode.INVALID_REQUEST,
    G2AErrorCode.VALIDATION_ERROR,
    G2AErrorCode.CIRCUIT_OPEN,
    G2AErrorCode.SYNC_CONFLICT,
)


@dataclass
class RetryPolicy:
    """How one error code is retried."""
    should_retry: bool
    max_retries: Optional[int] = None
    delay_ms: Optional[int] = None


class RetryStrategy:
    """
    Re-invokes an async operation while its failures are retryable.

    Total attempts are ``1 + max_retries`` at most; a code's policy may
    lower that. Non-retryable ``G2AError``s propagate unchanged on first
    failure, other exceptions are mapped onto the taxonomy first.
    """

    def __init__(self, settings: RetrySettings, metrics=None, jitter_max: float = 0.2,
                 retry_budget_ms: Optional[int] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.settings = settings
        self.metrics = metrics
        self.jitter_max = jitter_max
        self.retry_budget_ms = retry_budget_ms
        self._sleep = sleep
        self.logger = get_logger("retry_strategy")
        self.retry_policies: Dict[G2AErrorCode, RetryPolicy] = {}
        self._initialize_default_policies()

    def _initialize_default_policies(self):
        max_retries = self.settings.max_retries
        self.retry_policies[G2AErrorCode.TIMEOUT] = RetryPolicy(True, max_retries)
        self.retry_policies[G2AErrorCode.NETWORK_ERROR] = RetryPolicy(True, max_retries)
        self.retry_policies[G2AErrorCode.RATE_LIMIT] = RetryPolicy(True, max_retries, delay_ms=5000)
        self.retry_policies[G2AErrorCode.QUOTA_EXCEEDED] = RetryPolicy(True, max_retries, delay_ms=10000)
        # Server errors get half the budget, but at least one retry when retries are on
        api_retries = max(1, max_retries // 2) if max_retries > 0 else 0
        self.retry_policies[G2AErrorCode.API_ERROR] = RetryPolicy(True, api_retries)

        for code in NON_RETRYABLE_CODES:
            self.retry_policies[code] = RetryPolicy(False)

    def get_retry_policy(self, error: G2AError) -> RetryPolicy:
        policy = self.retry_policies.get(error.code)
        if policy is not None:
            return policy
        return RetryPolicy(error.retryable, self.settings.max_retries)

    def set_retry_policy(self, code: G2AErrorCode, policy: RetryPolicy):
        self.retry_policies[code] = policy

    def should_retry(self, error: G2AError, attempt: int) -> bool:
        """``attempt`` is the zero-based index of the attempt that just failed."""
        policy = self.get_retry_policy(error)
        if not policy.should_retry or not error.retryable:
            self.logger.debug("Error is not retryable", error_code=error.code.value)
            return False

        max_retries = self.settings.max_retries if policy.max_retries is None else policy.max_retries
        if attempt >= max_retries:
            self.logger.debug("Max retries reached", attempt=attempt, max_retries=max_retries)
            return False
        return True

    def calculate_delay_ms(self, attempt: int, error: Optional[G2AError] = None) -> int:
        """
        Backoff for the retry after ``attempt``.

        A policy delay or a server-provided ``retry_after`` replaces the
        exponential value; jitter applies to both.
        """
        fixed = None
        if error is not None:
            fixed = error.retry_after or self.get_retry_policy(error).delay_ms

        if fixed:
            delay = float(fixed)
        else:
            delay = self.settings.initial_delay_ms * (self.settings.backoff_multiplier ** attempt)
            delay = min(delay, self.settings.max_delay_ms)

        if self.settings.jitter and delay > 0:
            delay += delay * self.jitter_max * random.uniform(-1, 1)

        return max(0, int(delay))

    async def execute(self, func: Callable[[], Awaitable[T]], operation: str) -> T:
        """
        Run ``func`` with retries.

        Raises:
            G2AError: the last failure once retries are exhausted or on a terminal error
        """
        start_time = time.monotonic()
        attempt = 0

        while True:
            try:
                self.logger.debug("Executing operation", operation=operation, attempt=attempt)
                result = await func()
                if attempt > 0:
                    self.logger.info(
                        "Operation succeeded after retries",
                        operation=operation,
                        attempt=attempt,
                        total_time_ms=int((time.monotonic() - start_time) * 1000)
                    )
                return result

            except G2AError as e:
                error = e
                cause = None
            except Exception as e:
                error = ErrorMapper.from_error(e, operation)
                cause = e

            if self.retry_budget_ms is not None:
                elapsed_ms = (time.monotonic() - start_time) * 1000
                if elapsed_ms > self.retry_budget_ms:
                    self.logger.warning(
                        "Retry budget exceeded",
                        operation=operation,
                        elapsed_ms=int(elapsed_ms),
                        retry_budget_ms=self.retry_budget_ms
                    )
                    self._raise(error, cause)

            if not self.should_retry(error, attempt):
                if attempt > 0:
                    self.logger.error(
                        "Operation failed after retries",
                        operation=operation,
                        attempts=attempt + 1,
                        error_code=error.code.value,
                        error=error.message
                    )
                self._raise(error, cause)

            delay_ms = self.calculate_delay_ms(attempt, error)
            if self.metrics is not None:
                self.metrics.requests_retry.increment()

            self.logger.warning(
                "Operation failed, retrying",
                operation=operation,
                attempt=attempt + 1,
                delay_ms=delay_ms,
                error_code=error.code.value,
                error=error.message
            )

            await self._sleep(delay_ms / 1000)
            attempt += 1

    @staticmethod
    def _raise(error: G2AError, cause: Optional[BaseException]):
        if cause is None:
            raise error
        raise error from cause

    def get_stats(self) -> Dict[str, Any]:
        return {
            "config": asdict(self.settings),
            "jitter_max": self.jitter_max,
            "policies": {code.value: asdict(policy) for code, policy in self.retry_policies.items()},
        }
