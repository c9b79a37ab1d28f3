from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.errors import DdbConflict
from ..db.dynamodb.table import DynamoTable, get_table
from ..settings import settings

STATUS_INDEX = "status-createdAt-index"

# Attributes a tender update may touch (besides updatedAt).
UPDATABLE_FIELDS = ("title", "description", "deadline", "status")


def _table() -> DynamoTable:
    return get_table(settings.tenders_table_name, setting_name="TENDERS_TABLE")


def tender_key(tender_id: str) -> dict[str, str]:
    tid = str(tender_id or "").strip()
    if not tid:
        raise ValueError("tender_id is required")
    return {"tenderId": tid}


def get_tender(tender_id: str) -> dict[str, Any] | None:
    return _table().get_item(key=tender_key(tender_id))


def put_tender(item: dict[str, Any]) -> dict[str, Any]:
    _table().put_item(item=item, condition_expression="attribute_not_exists(tenderId)")
    return item


def update_tender(tender_id: str, changes: dict[str, Any], *, updated_at: str) -> dict[str, Any] | None:
    """
    Apply ``changes`` to an existing tender. Returns the new item, or None when
    the tender does not exist (the update never creates one).
    """
    names: dict[str, str] = {}
    values: dict[str, Any] = {":updatedAt": updated_at}
    sets = ["updatedAt = :updatedAt"]
    for field in UPDATABLE_FIELDS:
        if field not in changes:
            continue
        # "status" is a reserved word; alias every field for uniformity.
        names[f"#{field}"] = field
        values[f":{field}"] = changes[field]
        sets.append(f"#{field} = :{field}")

    names["#pk"] = "tenderId"
    try:
        return _table().update_item(
            key=tender_key(tender_id),
            update_expression="SET " + ", ".join(sets),
            expression_attribute_names=names,
            expression_attribute_values=values,
            condition_expression="attribute_exists(#pk)",
        )
    except DdbConflict:
        return None


def delete_tender(tender_id: str) -> dict[str, Any] | None:
    """Hard delete. Returns the deleted item, or None when it did not exist."""
    try:
        return _table().delete_item(
            key=tender_key(tender_id),
            condition_expression="attribute_exists(#pk)",
            expression_attribute_names={"#pk": "tenderId"},
        )
    except DdbConflict:
        return None


def list_all_tenders() -> list[dict[str, Any]]:
    return list(_table().iter_scan())


def list_tenders_by_status(status: str) -> list[dict[str, Any]]:
    return list(
        _table().iter_query(
            index_name=STATUS_INDEX,
            key_condition_expression=Key("status").eq(str(status)),
        )
    )
