from __future__ import annotations

import uuid
from typing import Any

from ...errors import Internal, tender_not_found
from ...observability.logging import get_logger
from ...repositories import tenders_repo
from ...shared import clock
from ..audit.audit_sink import AuditAction, audited
from ..identity.actor import ActorContext
from ..identity.permissions import Operation, require
from ..identity.roles import Role
from .models import Tender, TenderStatus
from .validation import validate_create, validate_update

log = get_logger("tender_service")


def load_tender(tender_id: str) -> Tender:
    """Fetch a tender or raise ``TENDER_NOT_FOUND``."""
    item = tenders_repo.get_tender(tender_id)
    if not item:
        raise tender_not_found()
    try:
        return Tender.from_item(item)
    except ValueError as e:
        log.error("tender_item_unreadable", tender_id=tender_id, error=str(e))
        raise Internal("Tender record is unreadable") from e


def visible_to(actor: ActorContext, tender: Tender, now=None) -> bool:
    """Role filter shared by list and get."""
    if actor.has_any(Role.ADMIN):
        return True
    stored = tender.stored_status()
    if actor.has_any(Role.EVALUATOR) and stored in (TenderStatus.OPEN, TenderStatus.CLOSED):
        return True
    if actor.has_any(Role.BIDDER) and stored is TenderStatus.OPEN:
        return tender.effective_status(now) is TenderStatus.OPEN
    return False


def create_tender(*, actor: ActorContext, body: dict[str, Any]) -> dict[str, Any]:
    with audited(AuditAction.TENDER_CREATED, actor) as scope:
        require(actor, Operation.CREATE_TENDER)
        now = clock.utcnow()
        data = validate_create(body, now=now)
        stamp = clock.to_iso(now)
        tender = Tender(
            tender_id=str(uuid.uuid4()),
            title=data["title"],
            description=data["description"],
            deadline=data["deadline"],
            status=TenderStatus.OPEN,
            created_by=actor.id,
            created_at=stamp,
            updated_at=stamp,
        )
        scope.tender_id = tender.tender_id
        tenders_repo.put_tender(tender.to_item())
        scope.metadata["title"] = tender.title
    return tender.to_api(now)


def list_tenders(*, actor: ActorContext) -> dict[str, Any]:
    with audited(AuditAction.TENDER_LISTED, actor) as scope:
        require(actor, Operation.LIST_TENDERS)
        if actor.has_any(Role.ADMIN):
            items = tenders_repo.list_all_tenders()
        elif actor.has_any(Role.EVALUATOR):
            items = tenders_repo.list_tenders_by_status(TenderStatus.OPEN.value)
            items += tenders_repo.list_tenders_by_status(TenderStatus.CLOSED.value)
        else:
            items = tenders_repo.list_tenders_by_status(TenderStatus.OPEN.value)

        now = clock.utcnow()
        tenders: list[Tender] = []
        for it in items:
            try:
                t = Tender.from_item(it)
            except ValueError as e:
                log.warning("tender_item_skipped", tender_id=it.get("tenderId"), error=str(e))
                continue
            if visible_to(actor, t, now):
                tenders.append(t)
        tenders.sort(key=lambda t: t.deadline)
        scope.metadata["count"] = len(tenders)

    return {"tenders": [t.to_api(now) for t in tenders], "count": len(tenders)}


def get_tender(*, actor: ActorContext, tender_id: str) -> dict[str, Any]:
    with audited(AuditAction.TENDER_VIEWED, actor, tender_id=tender_id):
        require(actor, Operation.GET_TENDER)
        tender = load_tender(tender_id)
        now = clock.utcnow()
        # Hidden tenders read as absent, not forbidden.
        if not visible_to(actor, tender, now):
            raise tender_not_found()
    return tender.to_api(now)


def update_tender(*, actor: ActorContext, tender_id: str, body: dict[str, Any]) -> dict[str, Any]:
    with audited(AuditAction.TENDER_UPDATED, actor, tender_id=tender_id) as scope:
        require(actor, Operation.UPDATE_TENDER)
        now = clock.utcnow()
        changes = validate_update(body, now=now)
        scope.metadata["fieldsUpdated"] = sorted(changes)
        item = tenders_repo.update_tender(tender_id, changes, updated_at=clock.to_iso(now))
        if item is None:
            raise tender_not_found()
        tender = Tender.from_item(item)
    return tender.to_api(now)


def delete_tender(*, actor: ActorContext, tender_id: str) -> dict[str, Any]:
    """
    Hard delete of the tender record only. Bids and stored documents are kept
    so the audit trail still resolves to real objects.
    """
    with audited(AuditAction.TENDER_DELETED, actor, tender_id=tender_id) as scope:
        require(actor, Operation.DELETE_TENDER)
        old = tenders_repo.delete_tender(tender_id)
        if old is None:
            raise tender_not_found()
        scope.metadata["title"] = old.get("title")
    return {"message": "Tender deleted", "tenderId": tender_id}
