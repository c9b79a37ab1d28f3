from __future__ import annotations

from ...observability.logging import get_logger
from ...services import email_ses

log = get_logger("notifier")


def _send(*, kind: str, to_email: str | None, subject: str, text: str) -> bool:
    """Best-effort email. Returns whether SES accepted it; never raises."""
    to_ = str(to_email or "").strip()
    if not to_:
        log.info("email_skipped", kind=kind, reason="no_recipient")
        return False
    try:
        res = email_ses.send_text_email(to_email=to_, subject=subject, text=text)
    except Exception as e:
        log.warning("email_send_failed", kind=kind, error=str(e) or type(e).__name__)
        return False
    return bool(res.get("ok"))


def bid_submitted(*, to_email: str | None, tender_id: str, file_name: str | None, submitted_at: str) -> bool:
    return _send(
        kind="bid_submitted",
        to_email=to_email,
        subject="TenderVault: Bid Submitted Successfully",
        text=(
            "Your bid document has been successfully submitted.\n\n"
            f"Tender ID: {tender_id}\n"
            f"File: {file_name or '(unknown)'}\n"
            f"Submitted at: {submitted_at}\n\n"
            "Log in to TenderVault to track your submission status."
        ),
    )


def bid_status_changed(*, to_email: str | None, tender_id: str, bid_status: str) -> bool:
    return _send(
        kind="bid_status_changed",
        to_email=to_email,
        subject="TenderVault: Bid Status Update",
        text=(
            f"Your bid for tender {tender_id} has been updated to: {bid_status}.\n\n"
            "Please check your dashboard for further details."
        ),
    )
