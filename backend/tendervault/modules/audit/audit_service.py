from __future__ import annotations

from typing import Any

from ...repositories import audit_log_repo
from ..identity.actor import ActorContext
from ..identity.permissions import Operation, require
from .audit_sink import AuditAction, audited

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, int(limit)))


def list_audit_logs(
    *,
    actor: ActorContext,
    user_id: str | None = None,
    tender_id: str | None = None,
    action: str | None = None,
    limit: int | None = None,
    next_token: str | None = None,
) -> dict[str, Any]:
    """
    Page through the audit trail.

    Facet precedence: ``user_id`` first, then ``tender_id``, else a full scan.
    Facet queries are newest first; a scan has no defined order.
    """
    uid = str(user_id or "").strip()
    tid = str(tender_id or "").strip()
    lim = clamp_limit(limit)
    filters = {"userId": uid or None, "tenderId": tid or None, "action": action or None}

    with audited(AuditAction.AUDIT_LOG_VIEWED, actor, metadata=filters) as scope:
        require(actor, Operation.LIST_AUDIT_LOG)
        if uid:
            page = audit_log_repo.query_by_user(uid, action=action, limit=lim, next_token=next_token)
        elif tid:
            page = audit_log_repo.query_by_tender(tid, action=action, limit=lim, next_token=next_token)
        else:
            page = audit_log_repo.scan_events(action=action, limit=lim, next_token=next_token)
        scope.metadata["count"] = len(page.items)

    out: dict[str, Any] = {"events": page.items, "count": len(page.items)}
    if page.next_token:
        out["nextToken"] = page.next_token
    return out
