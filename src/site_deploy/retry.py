"""
site_deploy.retry — Bounded exponential backoff around single AWS calls.

Default policy is one attempt: the SDK's own retry configuration is the
first line of defence. Raising DEPLOY_MAX_ATTEMPTS wraps each PutObject and
CreateInvalidation call with base * 2**(n-1) second delays, capped.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError, ConnectionClosedError, EndpointConnectionError

logger = Logger(service="site-deploy")

T = TypeVar("T")

RETRYABLE_ERROR_CODES: frozenset[str] = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "SlowDown",
        "RequestTimeout",
        "RequestTimeTooSkewed",
        "InternalError",
        "ServiceUnavailable",
        "TooManyInvalidationsInProgress",
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    base_delay_seconds: float = 2.0
    max_delay_seconds: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (1-based)."""
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)


NO_RETRY = RetryPolicy()


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, EndpointConnectionError | ConnectionClosedError):
        return True
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        if error.get("Code", "") in RETRYABLE_ERROR_CODES:
            return True
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        return isinstance(status, int) and status >= 500
    return False


def call_with_retries(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy = NO_RETRY,
    description: str = "aws call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Invoke `operation`, retrying transient failures up to policy.max_attempts.

    Non-transient errors and the last transient error propagate unchanged.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except (ClientError, EndpointConnectionError, ConnectionClosedError) as exc:
            if attempt >= policy.max_attempts or not is_transient(exc):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Transient failure, retrying",
                description=description,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=delay,
                error=str(exc),
            )
            sleep(delay)
            attempt += 1
