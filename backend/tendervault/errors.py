from __future__ import annotations

from typing import Any


class TenderVaultError(Exception):
    """
    Base for every error a domain manager raises on purpose.

    Managers raise these; only the HTTP boundary (``main``) turns them into
    responses. ``audit_result`` is what the audit trail records for the
    attempt that raised it.
    """

    status_code = 500
    default_code = "INTERNAL_ERROR"
    audit_result = "ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        fields: list[dict[str, str]] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.fields = fields or None

    def extra(self) -> dict[str, Any]:
        return {}


class ValidationFailed(TenderVaultError):
    status_code = 400
    default_code = "VALIDATION_ERROR"

    @classmethod
    def from_fields(cls, fields: list[dict[str, str]]) -> "ValidationFailed":
        return cls("Request validation failed", fields=fields)


class AuthDenied(TenderVaultError):
    status_code = 403
    default_code = "AUTH_INSUFFICIENT_ROLE"
    audit_result = "DENIED"


class NotFound(TenderVaultError):
    status_code = 404
    default_code = "NOT_FOUND"


class Locked(TenderVaultError):
    """
    423: either the time-lock (reviewers before the deadline, ``TENDER_LOCKED``)
    or the submission window (bidders after it, ``BID_DEADLINE_PASSED``).
    """

    status_code = 423
    default_code = "TENDER_LOCKED"
    audit_result = "DENIED"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        unlocks_at: str | None = None,
        seconds_remaining: int | None = None,
    ):
        super().__init__(message, code=code)
        self.unlocks_at = unlocks_at
        self.seconds_remaining = seconds_remaining

    def extra(self) -> dict[str, Any]:
        if self.unlocks_at is None:
            return {}
        return {"unlocksAt": self.unlocks_at, "secondsRemaining": self.seconds_remaining}


class Internal(TenderVaultError):
    status_code = 500
    default_code = "INTERNAL_ERROR"


def tender_not_found() -> NotFound:
    return NotFound("Tender does not exist", code="TENDER_NOT_FOUND")


def bid_not_found() -> NotFound:
    return NotFound("No bid found for this bidder on this tender", code="BID_NOT_FOUND")
