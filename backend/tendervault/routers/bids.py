from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from ..modules.bids import bid_service
from ..modules.evaluation import evaluation_service
from ..modules.identity.actor import ActorContext
from ._deps import get_actor

router = APIRouter(tags=["bids"])


@router.post("/tenders/{tenderId}/bids/upload-url")
def request_upload_url(
    tenderId: str,
    body: dict = Body(default_factory=dict),
    actor: ActorContext = Depends(get_actor),
):
    return bid_service.request_upload_url(actor=actor, tender_id=tenderId, body=body)


@router.get("/tenders/{tenderId}/bids")
def list_bids(tenderId: str, actor: ActorContext = Depends(get_actor)):
    return bid_service.list_bids(actor=actor, tender_id=tenderId)


@router.get("/tenders/{tenderId}/bids/{bidderId}/download-url")
def get_download_url(tenderId: str, bidderId: str, actor: ActorContext = Depends(get_actor)):
    return bid_service.get_download_url(actor=actor, tender_id=tenderId, bidder_id=bidderId)


@router.get("/tenders/{tenderId}/bids/{bidderId}/versions")
def list_versions(tenderId: str, bidderId: str, actor: ActorContext = Depends(get_actor)):
    return bid_service.list_versions(actor=actor, tender_id=tenderId, bidder_id=bidderId)


@router.post("/tenders/{tenderId}/bids/{bidderId}/restore")
def restore_version(
    tenderId: str,
    bidderId: str,
    body: dict = Body(default_factory=dict),
    actor: ActorContext = Depends(get_actor),
):
    return bid_service.restore_version(
        actor=actor, tender_id=tenderId, bidder_id=bidderId, version_id=body.get("versionId")
    )


@router.patch("/tenders/{tenderId}/bids/{bidderId}/status")
def set_bid_status(
    tenderId: str,
    bidderId: str,
    body: dict = Body(default_factory=dict),
    actor: ActorContext = Depends(get_actor),
):
    return evaluation_service.set_bid_status(
        actor=actor, tender_id=tenderId, bidder_id=bidderId, bid_status=body.get("bidStatus")
    )


@router.put("/tenders/{tenderId}/bids/{bidderId}/score")
def score_bid(
    tenderId: str,
    bidderId: str,
    body: dict = Body(default_factory=dict),
    actor: ActorContext = Depends(get_actor),
):
    return evaluation_service.score_bid(
        actor=actor,
        tender_id=tenderId,
        bidder_id=bidderId,
        score=body.get("score"),
        notes=body.get("notes"),
    )
