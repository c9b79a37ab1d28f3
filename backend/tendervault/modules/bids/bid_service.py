from __future__ import annotations

from typing import Any

from ...errors import Internal, NotFound, ValidationFailed, bid_not_found
from ...infrastructure.storage import bid_objects
from ...observability.logging import get_logger
from ...repositories import bids_repo
from ...shared import clock
from ..audit.audit_sink import AuditAction, audited
from ..evaluation.scoring import with_score_summary
from ..identity.actor import ActorContext
from ..identity.permissions import Operation, require
from ..tenders.tender_service import load_tender
from ..timelock.time_lock import ensure_accepting_bids, ensure_unsealed

log = get_logger("bid_service")

PDF_CONTENT_TYPE = "application/pdf"
MAX_FILE_SIZE = 52_428_800  # 50 MB


def validate_upload_request(body: dict[str, Any]) -> dict[str, Any]:
    errors: list[dict[str, str]] = []

    file_name = body.get("fileName")
    if not isinstance(file_name, str) or not file_name.strip():
        errors.append({"field": "fileName", "message": "fileName is required and must be a string"})
    elif not file_name.strip().lower().endswith(".pdf"):
        errors.append({"field": "fileName", "message": "fileName must end with .pdf"})

    if body.get("contentType") != PDF_CONTENT_TYPE:
        errors.append({"field": "contentType", "message": f'contentType must be exactly "{PDF_CONTENT_TYPE}"'})

    file_size = body.get("fileSize")
    if isinstance(file_size, bool) or not isinstance(file_size, (int, float)):
        errors.append({"field": "fileSize", "message": "fileSize is required and must be a number"})
    elif file_size < 1 or file_size > MAX_FILE_SIZE:
        errors.append(
            {"field": "fileSize", "message": f"fileSize must be between 1 and {MAX_FILE_SIZE} bytes (50MB)"}
        )

    if errors:
        raise ValidationFailed.from_fields(errors)
    return {"fileName": file_name.strip(), "contentType": PDF_CONTENT_TYPE, "fileSize": int(file_size)}


def request_upload_url(*, actor: ActorContext, tender_id: str, body: dict[str, Any]) -> dict[str, Any]:
    with audited(AuditAction.UPLOAD_URL_GENERATED, actor, tender_id=tender_id) as scope:
        require(actor, Operation.REQUEST_UPLOAD_URL)
        data = validate_upload_request(body)
        tender = load_tender(tender_id)
        now = clock.utcnow()
        ensure_accepting_bids(tender, now)

        key = bid_objects.make_bid_key(
            tender_id=tender.tender_id, bidder_id=actor.id, file_name=data["fileName"], now=now
        )
        scope.file_key = key
        scope.metadata.update({"fileName": data["fileName"], "fileSize": data["fileSize"]})
        presigned = bid_objects.presign_upload(key=key, content_type=data["contentType"])
        bids_repo.put_pending_bid(
            tender_id=tender.tender_id,
            bidder_id=actor.id,
            bidder_email=actor.email,
            s3_key=key,
            file_name=data["fileName"],
            file_size=data["fileSize"],
            now=clock.to_iso(now),
        )

    return {"uploadUrl": presigned["url"], "s3Key": key, "expiresIn": presigned["expiresIn"]}


def list_bids(*, actor: ActorContext, tender_id: str) -> dict[str, Any]:
    with audited(AuditAction.BIDS_LISTED, actor, tender_id=tender_id) as scope:
        require(actor, Operation.LIST_BIDS)
        tender = load_tender(tender_id)
        ensure_unsealed(tender)
        bids = [with_score_summary(b) for b in bids_repo.list_bids_for_tender(tender.tender_id)]
        scope.metadata["bidCount"] = len(bids)
    return {"bids": bids, "count": len(bids)}


def get_download_url(*, actor: ActorContext, tender_id: str, bidder_id: str) -> dict[str, Any]:
    with audited(
        AuditAction.DOWNLOAD_URL_GENERATED,
        actor,
        tender_id=tender_id,
        metadata={"targetBidderId": bidder_id},
    ) as scope:
        require(actor, Operation.DOWNLOAD_BID)
        tender = load_tender(tender_id)

        # Nothing about the bid is read until the seal is checked.
        scope.denied_action = AuditAction.DOWNLOAD_DENIED_TIMELOCKED
        ensure_unsealed(tender)
        scope.denied_action = None

        bid = bids_repo.get_bid(tender.tender_id, bidder_id)
        if not bid or not bid.get("s3Key"):
            raise bid_not_found()
        version_id = bid.get("currentVersionId")
        scope.file_key = bid["s3Key"]
        scope.version_id = version_id
        presigned = bid_objects.presign_download(
            key=bid["s3Key"], version_id=version_id, file_name=bid.get("fileName")
        )

    return {
        "downloadUrl": presigned["url"],
        "fileName": bid.get("fileName"),
        "fileSize": bid.get("fileSize"),
        "versionId": version_id,
        "expiresIn": presigned["expiresIn"],
    }


def _versions_for(bid: dict[str, Any]) -> list[dict[str, Any]]:
    prefix = bid_objects.bid_prefix(tender_id=bid["tenderId"], bidder_id=bid["bidderId"])
    current = bid.get("currentVersionId")
    out = []
    for v in bid_objects.list_versions(prefix=prefix):
        out.append(
            {
                "versionId": v["versionId"],
                "key": v["key"],
                "size": v["size"],
                "lastModified": v["lastModified"],
                "isLatest": bool(current) and v["versionId"] == current,
            }
        )
    return out


def list_versions(*, actor: ActorContext, tender_id: str, bidder_id: str) -> dict[str, Any]:
    with audited(
        AuditAction.VERSIONS_LISTED, actor, tender_id=tender_id, metadata={"bidderId": bidder_id}
    ) as scope:
        require(actor, Operation.LIST_VERSIONS)
        bid = bids_repo.get_bid(tender_id, bidder_id)
        if not bid:
            raise bid_not_found()
        versions = _versions_for(bid)
        scope.metadata["versionCount"] = len(versions)
    return {"versions": versions, "count": len(versions)}


def restore_version(
    *, actor: ActorContext, tender_id: str, bidder_id: str, version_id: str | None
) -> dict[str, Any]:
    """
    Copy a historical version back onto the bid's live key.

    History is never rewritten: the copy becomes a brand-new version and the
    restored one stays where it was.
    """
    with audited(
        AuditAction.VERSION_RESTORED, actor, tender_id=tender_id, metadata={"bidderId": bidder_id}
    ) as scope:
        require(actor, Operation.RESTORE_VERSION)
        vid = str(version_id or "").strip()
        if not vid:
            raise ValidationFailed.from_fields([{"field": "versionId", "message": "versionId is required"}])
        scope.metadata["restoredFrom"] = vid

        bid = bids_repo.get_bid(tender_id, bidder_id)
        if not bid or not bid.get("s3Key"):
            raise bid_not_found()

        source = next((v for v in _versions_for(bid) if v["versionId"] == vid), None)
        if source is None:
            raise NotFound("Version does not exist for this bid", code="VERSION_NOT_FOUND")

        new_version_id = bid_objects.copy_version(
            source_key=source["key"], version_id=vid, dest_key=bid["s3Key"]
        )
        if not new_version_id:
            # An unversioned bucket would silently overwrite history.
            raise Internal("Restore did not produce a new version")
        scope.file_key = bid["s3Key"]
        scope.version_id = new_version_id

        updated = bids_repo.set_current_version(
            tender_id=tender_id,
            bidder_id=bidder_id,
            version_id=new_version_id,
            now=clock.now_iso(),
        )
        if updated is None:
            log.warning(
                "restore_bid_vanished",
                tender_id=tender_id,
                bidder_id=bidder_id,
                new_version_id=new_version_id,
            )
            raise bid_not_found()

    return {
        "message": "Version restored successfully",
        "newVersionId": new_version_id,
        "restoredFrom": vid,
    }
