from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError

from .errors import (
    DdbConflict,
    DdbError,
    DdbInternal,
    DdbThrottled,
    DdbUnavailable,
    DdbValidation,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay_s: float = 0.05
    max_delay_s: float = 1.0


# Single attempt: used where the caller must finish in bounded time and must
# never retry inline (audit writes).
NO_RETRY = RetryPolicy(max_attempts=1)


_THROTTLE_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
}

_VALIDATION_CODES = {"ValidationException", "SerializationException"}

_ACCESS_CODES = {"AccessDeniedException", "UnrecognizedClientException", "ResourceNotFoundException"}


def _sleep_backoff(policy: RetryPolicy, attempt: int) -> None:
    # Full jitter exponential backoff.
    exp = min(policy.max_delay_s, policy.base_delay_s * (2 ** max(0, attempt - 1)))
    time.sleep(random.random() * exp)


def _client_error_code(e: ClientError) -> str:
    return str(((e.response or {}).get("Error") or {}).get("Code") or "")


def _client_error_request_id(e: ClientError) -> str | None:
    return ((e.response or {}).get("ResponseMetadata") or {}).get("RequestId")


def map_error(
    *,
    operation: str,
    table_name: str | None,
    key: dict[str, Any] | None,
    exc: Exception,
) -> DdbError:
    """Translate a botocore failure into the DdbError family."""
    if isinstance(exc, DdbError):
        return exc

    ctx: dict[str, Any] = {"operation": operation, "table_name": table_name, "key": key, "cause": exc}

    if isinstance(exc, ClientError):
        code = _client_error_code(exc)
        rid = _client_error_request_id(exc)

        if code == "ConditionalCheckFailedException":
            return DdbConflict(message="DynamoDB conditional check failed", aws_request_id=rid, **ctx)
        if code in _VALIDATION_CODES:
            return DdbValidation(message="DynamoDB request validation failed", aws_request_id=rid, **ctx)
        if code in _ACCESS_CODES:
            return DdbUnavailable(message=f"DynamoDB unavailable ({code})", aws_request_id=rid, **ctx)
        if code in _THROTTLE_CODES:
            return DdbThrottled(
                message="DynamoDB request throttled",
                aws_request_id=rid,
                retryable=True,
                **ctx,
            )
        return DdbInternal(message=f"DynamoDB request failed ({code or 'ClientError'})", aws_request_id=rid, **ctx)

    # Rejected client-side; no request was sent.
    if isinstance(exc, ParamValidationError):
        return DdbValidation(message="DynamoDB request parameters are invalid", **ctx)

    if isinstance(exc, BotoCoreError):
        return DdbUnavailable(message="DynamoDB client error", retryable=True, **ctx)

    return DdbInternal(message="Unexpected DynamoDB error", **ctx)


def ddb_call(
    operation: str,
    fn: Callable[[], T],
    *,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> T:
    policy = retry_policy or RetryPolicy()
    attempts = max(1, int(policy.max_attempts))

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            mapped = map_error(operation=operation, table_name=table_name, key=key, exc=e)
            # Conflicts and validation failures are final.
            if not mapped.retryable or attempt >= attempts:
                raise mapped from e
            _sleep_backoff(policy, attempt)

    raise DdbInternal(message="DynamoDB request failed", operation=operation, table_name=table_name, key=key)
