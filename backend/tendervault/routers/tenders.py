from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from ..modules.identity.actor import ActorContext
from ..modules.tenders import tender_service
from ._deps import get_actor

router = APIRouter(tags=["tenders"])


@router.post("/tenders", status_code=201)
def create_tender(body: dict = Body(default_factory=dict), actor: ActorContext = Depends(get_actor)):
    return tender_service.create_tender(actor=actor, body=body)


@router.get("/tenders")
def list_tenders(actor: ActorContext = Depends(get_actor)):
    return tender_service.list_tenders(actor=actor)


@router.get("/tenders/{tenderId}")
def get_tender(tenderId: str, actor: ActorContext = Depends(get_actor)):
    return tender_service.get_tender(actor=actor, tender_id=tenderId)


@router.put("/tenders/{tenderId}")
def update_tender(
    tenderId: str,
    body: dict = Body(default_factory=dict),
    actor: ActorContext = Depends(get_actor),
):
    return tender_service.update_tender(actor=actor, tender_id=tenderId, body=body)


@router.delete("/tenders/{tenderId}")
def delete_tender(tenderId: str, actor: ActorContext = Depends(get_actor)):
    return tender_service.delete_tender(actor=actor, tender_id=tenderId)
