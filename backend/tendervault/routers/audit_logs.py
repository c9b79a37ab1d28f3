from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..modules.audit import audit_service
from ..modules.identity.actor import ActorContext
from ._deps import get_actor

router = APIRouter(tags=["audit"])


@router.get("/audit-logs")
def list_audit_logs(
    userId: str | None = Query(default=None),
    tenderId: str | None = Query(default=None),
    action: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    nextToken: str | None = Query(default=None),
    actor: ActorContext = Depends(get_actor),
):
    return audit_service.list_audit_logs(
        actor=actor,
        user_id=userId,
        tender_id=tenderId,
        action=action,
        limit=limit,
        next_token=nextToken,
    )
