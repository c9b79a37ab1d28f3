"""
Sealed-bid time-lock.

Reviewers (admins and evaluators) may not see bids until the deadline has
passed; bidders may not submit once it has. Both checks read the same clock.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from ...errors import Locked, ValidationFailed
from ...shared import clock
from ..tenders.models import Tender, TenderStatus


@dataclass(frozen=True, slots=True)
class LockState:
    sealed: bool
    unlocks_at: str
    seconds_remaining: int


def is_sealed(tender: Tender, now: datetime | None = None) -> bool:
    return (now or clock.utcnow()) < tender.deadline


def seconds_remaining(tender: Tender, now: datetime | None = None) -> int:
    delta = (tender.deadline - (now or clock.utcnow())).total_seconds()
    return max(0, math.ceil(delta))


def lock_state(tender: Tender, now: datetime | None = None) -> LockState:
    at = now or clock.utcnow()
    return LockState(
        sealed=is_sealed(tender, at),
        unlocks_at=clock.to_iso(tender.deadline),
        seconds_remaining=seconds_remaining(tender, at),
    )


def ensure_unsealed(tender: Tender, now: datetime | None = None) -> None:
    """Raise ``Locked(TENDER_LOCKED)`` while the tender's bids are still sealed."""
    state = lock_state(tender, now)
    if state.sealed:
        raise Locked(
            "Bids are sealed until the tender deadline",
            code="TENDER_LOCKED",
            unlocks_at=state.unlocks_at,
            seconds_remaining=state.seconds_remaining,
        )


def ensure_accepting_bids(tender: Tender, now: datetime | None = None) -> None:
    # Persisted status gates submissions; the deadline is checked separately
    # so an OPEN tender past its deadline gets the deadline refusal.
    if tender.stored_status() is not TenderStatus.OPEN:
        raise ValidationFailed(
            "Tender is not accepting bids",
            code="TENDER_ALREADY_CLOSED",
        )
    if not is_sealed(tender, now):
        raise Locked(
            "The bid submission deadline has passed",
            code="BID_DEADLINE_PASSED",
        )
