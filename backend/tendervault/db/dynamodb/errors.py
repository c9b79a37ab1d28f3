from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class DdbError(Exception):
    """Base error for DynamoDB operations.

    Repositories raise these (via ``ddb_call``); the FastAPI exception handler
    in ``main`` renders them. Only ``InvalidNextToken`` is a caller problem (bad
    continuation token); everything else is an infrastructure failure and is
    reported to callers as a generic 500.
    """

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message

    def log_fields(self) -> dict[str, Any]:
        out = {
            "operation": self.operation,
            "table": self.table_name,
            "key": self.key,
            "aws_request_id": self.aws_request_id,
            "retryable": self.retryable,
            "error_type": type(self).__name__,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass(slots=True)
class DdbConflict(DdbError):
    """A ConditionExpression did not hold (item missing, stale key, ...)."""


@dataclass(slots=True)
class DdbValidation(DdbError):
    pass


@dataclass(slots=True)
class DdbThrottled(DdbError):
    pass


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    pass


@dataclass(slots=True)
class DdbInternal(DdbError):
    pass


@dataclass(slots=True)
class InvalidNextToken(DdbValidation):
    """A caller-supplied continuation token that does not decode to a key."""
