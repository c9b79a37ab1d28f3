from __future__ import annotations

from typing import Any

from ..infrastructure.aws_clients import sesv2_client
from ..observability.logging import get_logger
from ..settings import settings

log = get_logger("email_ses")


def send_text_email(*, to_email: str, subject: str, text: str) -> dict[str, Any]:
    to_ = str(to_email or "").strip()
    frm = str(settings.ses_from_email or "").strip()
    subj = str(subject or "").strip()[:200] or "TenderVault notification"
    body = str(text or "").strip() or "(empty)"
    if not frm:
        log.info("email_skipped", reason="ses_from_email_not_set", subject=subj)
        return {"ok": False, "error": "missing_from"}
    if not to_ or "@" not in to_:
        log.info("email_skipped", reason="missing_recipient", subject=subj)
        return {"ok": False, "error": "missing_to"}

    resp = sesv2_client().send_email(
        FromEmailAddress=frm,
        Destination={"ToAddresses": [to_]},
        Content={
            "Simple": {
                "Subject": {"Data": subj},
                "Body": {"Text": {"Data": body}},
            }
        },
    )
    msg_id = (resp or {}).get("MessageId") if isinstance(resp, dict) else None
    return {"ok": True, "messageId": msg_id}
