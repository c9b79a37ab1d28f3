from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.errors import DdbConflict
from ..db.dynamodb.table import DynamoTable, get_table
from ..observability.logging import get_logger
from ..settings import settings

log = get_logger("bids_repo")

BID_PENDING = "PENDING"
BID_SUBMITTED = "SUBMITTED"
BID_DISQUALIFIED = "DISQUALIFIED"

SCORE_MAX_ATTEMPTS = 3


def _table() -> DynamoTable:
    return get_table(settings.bids_table_name, setting_name="BIDS_TABLE")


def bid_key(tender_id: str, bidder_id: str) -> dict[str, str]:
    tid = str(tender_id or "").strip()
    bid = str(bidder_id or "").strip()
    if not tid or not bid:
        raise ValueError("tender_id and bidder_id are required")
    return {"tenderId": tid, "bidderId": bid}


# Every conditional update below refuses to create a partial bid.
_BID_EXISTS = "attribute_exists(#pk) AND attribute_exists(#sk)"
_KEY_NAMES = {"#pk": "tenderId", "#sk": "bidderId"}


def get_bid(tender_id: str, bidder_id: str) -> dict[str, Any] | None:
    return _table().get_item(key=bid_key(tender_id, bidder_id), consistent_read=True)


def list_bids_for_tender(tender_id: str) -> list[dict[str, Any]]:
    return list(
        _table().iter_query(key_condition_expression=Key("tenderId").eq(str(tender_id)))
    )


def put_pending_bid(
    *,
    tender_id: str,
    bidder_id: str,
    bidder_email: str,
    s3_key: str,
    file_name: str,
    file_size: int,
    now: str,
) -> dict[str, Any]:
    """
    Point the (tender, bidder) bid at a freshly issued upload key.

    This is an unconditional put: an earlier submission for the same pair is
    replaced by a PENDING record until the new upload is confirmed.
    """
    item = {
        **bid_key(tender_id, bidder_id),
        "bidderEmail": bidder_email,
        "s3Key": s3_key,
        "fileName": file_name,
        "fileSize": int(file_size),
        "status": BID_PENDING,
        "createdAt": now,
        "updatedAt": now,
    }
    _table().put_item(item=item)
    return item


def mark_submitted(
    *,
    tender_id: str,
    bidder_id: str,
    s3_key: str,
    version_id: str | None,
    file_size: int | None,
    now: str,
) -> tuple[dict[str, Any], dict[str, Any]] | None:
    """
    Record a confirmed upload.

    Only applies when the bid exists and still points at ``s3_key``. Returns
    ``(old, new)`` images, or None when the notification is stale or unknown.
    """
    names = {**_KEY_NAMES, "#status": "status", "#s3Key": "s3Key"}
    values: dict[str, Any] = {
        ":submitted": BID_SUBMITTED,
        ":key": s3_key,
        ":now": now,
    }
    sets = ["#status = :submitted", "submittedAt = :now", "updatedAt = :now"]
    if version_id:
        values[":vid"] = version_id
        sets.append("currentVersionId = :vid")
    if file_size is not None:
        values[":size"] = int(file_size)
        sets.append("fileSize = :size")

    key = bid_key(tender_id, bidder_id)
    try:
        old = _table().update_item(
            key=key,
            update_expression="SET " + ", ".join(sets),
            expression_attribute_names=names,
            expression_attribute_values=values,
            condition_expression=f"{_BID_EXISTS} AND #s3Key = :key",
            return_values="ALL_OLD",
        )
    except DdbConflict:
        return None
    if old is None:
        return None
    new = {**old, "status": BID_SUBMITTED, "submittedAt": now, "updatedAt": now}
    if version_id:
        new["currentVersionId"] = version_id
    if file_size is not None:
        new["fileSize"] = int(file_size)
    return old, new


def set_current_version(
    *, tender_id: str, bidder_id: str, version_id: str, now: str
) -> dict[str, Any] | None:
    try:
        return _table().update_item(
            key=bid_key(tender_id, bidder_id),
            update_expression="SET currentVersionId = :vid, updatedAt = :now",
            expression_attribute_names=dict(_KEY_NAMES),
            expression_attribute_values={":vid": version_id, ":now": now},
            condition_expression=_BID_EXISTS,
        )
    except DdbConflict:
        return None


def set_bid_status(
    *, tender_id: str, bidder_id: str, bid_status: str, actor_id: str, now: str
) -> dict[str, Any] | None:
    try:
        return _table().update_item(
            key=bid_key(tender_id, bidder_id),
            update_expression=(
                "SET bidStatus = :bs, bidStatusUpdatedBy = :by, "
                "bidStatusUpdatedAt = :now, updatedAt = :now"
            ),
            expression_attribute_names=dict(_KEY_NAMES),
            expression_attribute_values={":bs": bid_status, ":by": actor_id, ":now": now},
            condition_expression=_BID_EXISTS,
        )
    except DdbConflict:
        return None


def put_evaluator_score(
    *,
    tender_id: str,
    bidder_id: str,
    evaluator_id: str,
    entry: dict[str, Any],
    now: str,
) -> dict[str, Any] | None:
    """
    Upsert ``evaluationScores[evaluator_id] = entry``.

    Sets the evaluator's sub-key when the map exists, otherwise creates the map
    with just this entry. A lost race on map creation retries the sub-key set.
    Returns the updated bid, or None when the bid does not exist.
    """
    key = bid_key(tender_id, bidder_id)
    names = {**_KEY_NAMES, "#scores": "evaluationScores", "#uid": str(evaluator_id)}

    for attempt in range(1, SCORE_MAX_ATTEMPTS + 1):
        try:
            return _table().update_item(
                key=key,
                update_expression="SET #scores.#uid = :entry, updatedAt = :now",
                expression_attribute_names=names,
                expression_attribute_values={":entry": entry, ":now": now},
                condition_expression=f"{_BID_EXISTS} AND attribute_exists(#scores)",
            )
        except DdbConflict:
            pass

        try:
            return _table().update_item(
                key=key,
                update_expression="SET #scores = :map, updatedAt = :now",
                expression_attribute_names={**_KEY_NAMES, "#scores": "evaluationScores"},
                expression_attribute_values={":map": {str(evaluator_id): entry}, ":now": now},
                condition_expression=f"{_BID_EXISTS} AND attribute_not_exists(#scores)",
            )
        except DdbConflict:
            # Either the bid is gone or another evaluator created the map first.
            if get_bid(tender_id, bidder_id) is None:
                return None
            log.info(
                "evaluation_scores_map_race",
                tender_id=tender_id,
                bidder_id=bidder_id,
                attempt=attempt,
            )

    raise DdbConflict(
        message="evaluationScores update did not converge",
        operation="UpdateItem",
        table_name=settings.bids_table_name,
        key=key,
    )
