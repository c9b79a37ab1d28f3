"""
Upload confirmation from S3 ObjectCreated notifications.

Delivery is at-least-once: the same record can arrive twice, or after the
bidder has already requested a newer upload URL. A record only confirms the
bid it was issued for (matching ``s3Key``), and a record whose version is
already current changes nothing. Confirmation is a keyed upsert: the last
delivered version of the live key becomes current, so records for the same
key are applied in delivery order, not upload order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote_plus

from ...observability.logging import get_logger
from ...repositories import bids_repo
from ...shared import clock
from ..audit.audit_sink import AuditAction, AuditResult, record
from ..identity.actor import UNKNOWN, ActorContext
from ..identity.roles import Role
from ..notifications import notifier

log = get_logger("upload_events")

CONFIRMED = "confirmed"
DUPLICATE = "duplicate"
STALE = "stale"


@dataclass(frozen=True, slots=True)
class UploadNotification:
    bucket: str
    key: str
    version_id: str | None
    size: int | None
    event_name: str = ""


@dataclass(slots=True)
class BatchResult:
    confirmed: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def _loads(body: Any) -> Any:
    if isinstance(body, (dict, list)):
        return body
    return json.loads(str(body or ""))


def extract_records(body: Any) -> list[dict[str, Any]]:
    """
    Pull S3 event records out of a queue message body.

    Accepts a raw S3 event, an SNS envelope around one, or the one-off
    ``s3:TestEvent`` S3 sends when the notification is configured (no records).
    Raises ValueError when the body is not JSON.
    """
    try:
        doc = _loads(body)
    except json.JSONDecodeError as e:
        raise ValueError(f"message body is not JSON: {e}") from e

    if isinstance(doc, dict) and isinstance(doc.get("Message"), str) and doc.get("Type") == "Notification":
        return extract_records(doc["Message"])
    if not isinstance(doc, dict):
        return []
    if doc.get("Event") == "s3:TestEvent":
        return []
    recs = doc.get("Records")
    return [r for r in recs if isinstance(r, dict)] if isinstance(recs, list) else []


def parse_record(rec: dict[str, Any]) -> UploadNotification | None:
    """One S3 record, or None when it is not an ObjectCreated event."""
    event_name = str(rec.get("eventName") or "")
    if event_name and not event_name.startswith("ObjectCreated"):
        return None
    s3 = rec.get("s3") if isinstance(rec.get("s3"), dict) else {}
    bucket = str(((s3.get("bucket") or {}).get("name")) or "")
    obj = s3.get("object") if isinstance(s3.get("object"), dict) else {}
    raw_key = str(obj.get("key") or "")
    if not raw_key:
        raise ValueError("record has no object key")
    size = obj.get("size")
    return UploadNotification(
        bucket=bucket,
        # S3 URL-encodes keys in notifications, with spaces as '+'.
        key=unquote_plus(raw_key),
        version_id=str(obj.get("versionId") or "").strip() or None,
        size=int(size) if isinstance(size, (int, float)) else None,
        event_name=event_name,
    )


def parse_bid_key(key: str) -> tuple[str, str]:
    """``{tenderId}/{bidderId}/{epochMillis}-{fileName}`` -> (tenderId, bidderId)."""
    parts = str(key or "").split("/")
    if len(parts) < 3 or not parts[0] or not parts[1]:
        raise ValueError(f"unexpected bid object key: {key!r}")
    return parts[0], parts[1]


def _bidder_actor(bidder_id: str, email: str | None) -> ActorContext:
    return ActorContext(
        id=bidder_id,
        roles=(Role.BIDDER,),
        primary_role=Role.BIDDER,
        email=str(email or "").strip() or bidder_id,
        ip=UNKNOWN,
        user_agent=UNKNOWN,
    )


def confirm_submission(n: UploadNotification) -> str:
    """Apply one notification. Returns CONFIRMED, DUPLICATE or STALE."""
    tender_id, bidder_id = parse_bid_key(n.key)

    bid = bids_repo.get_bid(tender_id, bidder_id)
    if not bid or bid.get("s3Key") != n.key:
        log.info(
            "upload_event_skipped",
            reason="stale_or_unknown_key",
            tender_id=tender_id,
            bidder_id=bidder_id,
            key=n.key,
        )
        return STALE
    if (
        bid.get("status") == bids_repo.BID_SUBMITTED
        and n.version_id
        and bid.get("currentVersionId") == n.version_id
    ):
        log.info("upload_event_duplicate", tender_id=tender_id, bidder_id=bidder_id, version_id=n.version_id)
        return DUPLICATE

    actor = _bidder_actor(bidder_id, bid.get("bidderEmail"))
    audit_kwargs = {
        "action": AuditAction.BID_SUBMITTED,
        "actor": actor,
        "tender_id": tender_id,
        "file_key": n.key,
        "version_id": n.version_id,
        "metadata": {"bucket": n.bucket, "size": n.size},
    }
    now = clock.now_iso()
    try:
        res = bids_repo.mark_submitted(
            tender_id=tender_id,
            bidder_id=bidder_id,
            s3_key=n.key,
            version_id=n.version_id,
            file_size=n.size,
            now=now,
        )
    except Exception:
        record(result=AuditResult.ERROR, **audit_kwargs)
        raise
    if res is None:
        # A newer upload URL was issued between the read and the write.
        log.info("upload_event_skipped", reason="key_changed", tender_id=tender_id, bidder_id=bidder_id)
        return STALE

    _, new = res
    record(result=AuditResult.SUCCESS, **audit_kwargs)
    notifier.bid_submitted(
        to_email=new.get("bidderEmail"),
        tender_id=tender_id,
        file_name=new.get("fileName"),
        submitted_at=now,
    )
    log.info("bid_submission_confirmed", tender_id=tender_id, bidder_id=bidder_id, version_id=n.version_id)
    return CONFIRMED


def confirm_submissions(records: list[dict[str, Any]]) -> BatchResult:
    """Process a batch; each record succeeds or fails on its own."""
    out = BatchResult()
    for rec in records:
        try:
            n = parse_record(rec)
            if n is None:
                out.skipped += 1
                continue
            outcome = confirm_submission(n)
        except ValueError as e:
            # Malformed records will never succeed; retrying them is pointless.
            log.warning("upload_event_skipped", reason="malformed_record", error=str(e))
            out.skipped += 1
            continue
        except Exception as e:
            log.exception("upload_event_failed", error=str(e) or type(e).__name__)
            out.failed += 1
            out.errors.append(str(e) or type(e).__name__)
            continue

        if outcome == CONFIRMED:
            out.confirmed += 1
        elif outcome == DUPLICATE:
            out.duplicates += 1
        else:
            out.skipped += 1
    return out
