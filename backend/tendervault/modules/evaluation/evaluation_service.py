from __future__ import annotations

from enum import Enum
from typing import Any

from ...errors import ValidationFailed, bid_not_found
from ...repositories import bids_repo
from ...shared import clock
from ..audit.audit_sink import AuditAction, audited
from ..identity.actor import ActorContext
from ..identity.permissions import Operation, require
from ..notifications import notifier
from ..tenders.tender_service import load_tender
from ..timelock.time_lock import ensure_unsealed
from .scoring import NOTES_MAX, SCORE_MAX, SCORE_MIN, with_score_summary


class BidStatus(str, Enum):
    UNDER_REVIEW = "UNDER_REVIEW"
    SHORTLISTED = "SHORTLISTED"
    DISQUALIFIED = "DISQUALIFIED"
    AWARDED = "AWARDED"


def validate_bid_status(value: Any) -> BidStatus:
    try:
        return BidStatus(str(value or "").strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in BidStatus)
        raise ValidationFailed.from_fields(
            [{"field": "bidStatus", "message": f"bidStatus must be one of: {allowed}"}]
        ) from None


def validate_score(score: Any, notes: Any) -> tuple[int, str | None]:
    errors: list[dict[str, str]] = []
    # JSON has one number type; 7.0 is accepted as 7, 7.5 is not.
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        errors.append({"field": "score", "message": "score is required and must be an integer"})
    elif isinstance(score, float) and not score.is_integer():
        errors.append({"field": "score", "message": "score must be an integer"})
    elif not SCORE_MIN <= int(score) <= SCORE_MAX:
        errors.append({"field": "score", "message": f"score must be between {SCORE_MIN} and {SCORE_MAX}"})

    clean_notes: str | None = None
    if notes is not None:
        if not isinstance(notes, str):
            errors.append({"field": "notes", "message": "notes must be a string"})
        elif len(notes) > NOTES_MAX:
            errors.append({"field": "notes", "message": f"notes must be at most {NOTES_MAX} characters"})
        else:
            clean_notes = notes.strip() or None

    if errors:
        raise ValidationFailed.from_fields(errors)
    return int(score), clean_notes


def set_bid_status(
    *, actor: ActorContext, tender_id: str, bidder_id: str, bid_status: Any
) -> dict[str, Any]:
    with audited(
        AuditAction.BID_STATUS_UPDATED, actor, tender_id=tender_id, metadata={"bidderId": bidder_id}
    ) as scope:
        require(actor, Operation.SET_BID_STATUS)
        status = validate_bid_status(bid_status)
        scope.metadata["bidStatus"] = status.value
        tender = load_tender(tender_id)
        updated = bids_repo.set_bid_status(
            tender_id=tender.tender_id,
            bidder_id=bidder_id,
            bid_status=status.value,
            actor_id=actor.id,
            now=clock.now_iso(),
        )
        if updated is None:
            raise bid_not_found()

    notifier.bid_status_changed(
        to_email=updated.get("bidderEmail"), tender_id=tender_id, bid_status=status.value
    )
    return with_score_summary(updated)


def score_bid(
    *,
    actor: ActorContext,
    tender_id: str,
    bidder_id: str,
    score: Any,
    notes: Any = None,
) -> dict[str, Any]:
    """
    Record the calling evaluator's score for a bid.

    Each evaluator owns exactly one entry, keyed by their id; scoring again
    replaces that entry and never touches anyone else's.
    """
    with audited(
        AuditAction.BID_SCORED, actor, tender_id=tender_id, metadata={"bidderId": bidder_id}
    ) as scope:
        require(actor, Operation.SCORE_BID)
        value, clean_notes = validate_score(score, notes)
        scope.metadata["score"] = value
        tender = load_tender(tender_id)
        ensure_unsealed(tender)

        now = clock.now_iso()
        entry: dict[str, Any] = {"score": value, "scoredAt": now}
        if clean_notes:
            entry["notes"] = clean_notes
        updated = bids_repo.put_evaluator_score(
            tender_id=tender.tender_id,
            bidder_id=bidder_id,
            evaluator_id=actor.id,
            entry=entry,
            now=now,
        )
        if updated is None:
            raise bid_not_found()

    return with_score_summary(updated)
