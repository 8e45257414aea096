"""Unit tests for site_deploy.retry — bounded exponential backoff."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from site_deploy.retry import NO_RETRY, RetryPolicy, call_with_retries, is_transient


def _client_error(code: str, status: int = 400) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PutObject",
    )


def test_delay_doubles_and_caps() -> None:
    policy = RetryPolicy(max_attempts=6, base_delay_seconds=2.0, max_delay_seconds=10.0)
    assert [policy.delay_for(n) for n in range(1, 5)] == [2.0, 4.0, 8.0, 10.0]


def test_is_transient() -> None:
    assert is_transient(_client_error("SlowDown", 503))
    assert is_transient(_client_error("Throttling"))
    assert is_transient(_client_error("Whatever", 500))
    assert is_transient(EndpointConnectionError(endpoint_url="https://s3.amazonaws.com"))
    assert not is_transient(_client_error("AccessDenied", 403))
    assert not is_transient(_client_error("NoSuchBucket", 404))


def test_default_policy_makes_single_attempt() -> None:
    operation = MagicMock(side_effect=_client_error("SlowDown", 503))
    with pytest.raises(ClientError):
        call_with_retries(operation, policy=NO_RETRY, sleep=lambda _: None)
    assert operation.call_count == 1


def test_retries_transient_until_success() -> None:
    slow_down = _client_error("SlowDown", 503)
    operation = MagicMock(side_effect=[slow_down, slow_down, "ok"])
    sleeps: list[float] = []

    result = call_with_retries(
        operation,
        policy=RetryPolicy(max_attempts=3, base_delay_seconds=1.0),
        sleep=sleeps.append,
    )

    assert result == "ok"
    assert sleeps == [1.0, 2.0]


def test_non_transient_error_is_not_retried() -> None:
    operation = MagicMock(side_effect=_client_error("AccessDenied", 403))
    with pytest.raises(ClientError):
        call_with_retries(operation, policy=RetryPolicy(max_attempts=5), sleep=lambda _: None)
    assert operation.call_count == 1


def test_last_error_propagates_when_attempts_exhausted() -> None:
    operation = MagicMock(side_effect=_client_error("InternalError", 500))
    sleeps: list[float] = []
    with pytest.raises(ClientError, match="InternalError"):
        call_with_retries(
            operation,
            policy=RetryPolicy(max_attempts=3, base_delay_seconds=0.5),
            sleep=sleeps.append,
        )
    assert operation.call_count == 3
    assert sleeps == [0.5, 1.0]
