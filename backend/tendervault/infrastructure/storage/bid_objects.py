from __future__ import annotations

from datetime import datetime
from typing import Any

from ...settings import settings
from ...shared import clock
from ..aws_clients import s3_client

PRESIGNED_URL_EXPIRY_SECONDS = 900
SSE_ALGORITHM = "AES256"


def get_bids_bucket_name() -> str:
    name = (settings.bids_bucket_name or "").strip()
    if not name:
        raise RuntimeError("BIDS_BUCKET is not set")
    return name


def _safe_file_name(file_name: str) -> str:
    # Keep the name readable but never let it add key segments.
    raw = str(file_name or "").strip().replace("\\", "/")
    return raw.rsplit("/", 1)[-1] or "bid.pdf"


def bid_prefix(*, tender_id: str, bidder_id: str) -> str:
    return f"{tender_id}/{bidder_id}/"


def make_bid_key(*, tender_id: str, bidder_id: str, file_name: str, now: datetime | None = None) -> str:
    """Object key for one upload: ``{tenderId}/{bidderId}/{epochMillis}-{fileName}``."""
    ts = clock.epoch_millis(now or clock.utcnow())
    return f"{bid_prefix(tender_id=tender_id, bidder_id=bidder_id)}{ts}-{_safe_file_name(file_name)}"


def presign_upload(*, key: str, content_type: str) -> dict[str, Any]:
    """
    Presigned PUT scoped to exactly ``key``.

    The client must send the same Content-Type and the SSE header, or S3
    rejects the signature.
    """
    bucket = get_bids_bucket_name()
    url = s3_client().generate_presigned_url(
        ClientMethod="put_object",
        Params={
            "Bucket": bucket,
            "Key": key,
            "ContentType": str(content_type),
            "ServerSideEncryption": SSE_ALGORITHM,
        },
        ExpiresIn=PRESIGNED_URL_EXPIRY_SECONDS,
    )
    return {"bucket": bucket, "key": key, "url": url, "expiresIn": PRESIGNED_URL_EXPIRY_SECONDS}


def presign_download(*, key: str, version_id: str | None, file_name: str | None) -> dict[str, Any]:
    bucket = get_bids_bucket_name()
    params: dict[str, Any] = {"Bucket": bucket, "Key": key}
    if version_id:
        params["VersionId"] = version_id
    name = _safe_file_name(file_name or key).replace('"', "")
    params["ResponseContentDisposition"] = f'attachment; filename="{name}"'
    url = s3_client().generate_presigned_url(
        ClientMethod="get_object",
        Params=params,
        ExpiresIn=PRESIGNED_URL_EXPIRY_SECONDS,
    )
    return {"bucket": bucket, "key": key, "url": url, "expiresIn": PRESIGNED_URL_EXPIRY_SECONDS}


def list_versions(*, prefix: str) -> list[dict[str, Any]]:
    """
    Every stored version under ``prefix``, newest first.

    Delete markers are not versions of the document and are left out.
    """
    bucket = get_bids_bucket_name()
    paginator = s3_client().get_paginator("list_object_versions")
    out: list[dict[str, Any]] = []
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        for v in page.get("Versions") or []:
            if not isinstance(v, dict):
                continue
            vid = str(v.get("VersionId") or "").strip()
            if not vid:
                continue
            lm = v.get("LastModified")
            out.append(
                {
                    "versionId": vid,
                    "key": str(v.get("Key") or ""),
                    "size": int(v.get("Size") or 0),
                    "lastModified": clock.to_iso(lm) if isinstance(lm, datetime) else str(lm or ""),
                }
            )
    out.sort(key=lambda v: v["lastModified"], reverse=True)
    return out


def copy_version(*, source_key: str, version_id: str, dest_key: str) -> str | None:
    """Server-side copy of one historical version onto ``dest_key``. Returns the new version id."""
    bucket = get_bids_bucket_name()
    resp = s3_client().copy_object(
        Bucket=bucket,
        CopySource={"Bucket": bucket, "Key": source_key, "VersionId": version_id},
        Key=dest_key,
        ServerSideEncryption=SSE_ALGORITHM,
        MetadataDirective="COPY",
    )
    return str((resp or {}).get("VersionId") or "").strip() or None
