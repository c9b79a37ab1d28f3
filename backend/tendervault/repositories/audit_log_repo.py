from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ..db.dynamodb.client import single_attempt_config
from ..db.dynamodb.retry import NO_RETRY
from ..db.dynamodb.table import DynamoTable, Page, get_table
from ..settings import settings

USER_INDEX = "userId-timestamp-index"
TENDER_INDEX = "tenderId-timestamp-index"


def _table(config=None) -> DynamoTable:
    return get_table(settings.audit_log_table_name, setting_name="AUDIT_LOG_TABLE", config=config)


def put_event(event: dict[str, Any]) -> None:
    # One attempt at both layers: no ddb_call retry and no botocore retry.
    _table(single_attempt_config()).put_item(item=event, retry_policy=NO_RETRY)


def _action_filter(action: str | None):
    a = str(action or "").strip()
    return Attr("action").eq(a) if a else None


def query_by_user(
    user_id: str,
    *,
    action: str | None = None,
    limit: int = 50,
    next_token: str | None = None,
) -> Page:
    return _table().query_page(
        index_name=USER_INDEX,
        key_condition_expression=Key("userId").eq(user_id),
        filter_expression=_action_filter(action),
        scan_index_forward=False,
        limit=limit,
        next_token=next_token,
    )


def query_by_tender(
    tender_id: str,
    *,
    action: str | None = None,
    limit: int = 50,
    next_token: str | None = None,
) -> Page:
    return _table().query_page(
        index_name=TENDER_INDEX,
        key_condition_expression=Key("tenderId").eq(tender_id),
        filter_expression=_action_filter(action),
        scan_index_forward=False,
        limit=limit,
        next_token=next_token,
    )


def scan_events(
    *,
    action: str | None = None,
    limit: int = 50,
    next_token: str | None = None,
) -> Page:
    return _table().scan_page(
        filter_expression=_action_filter(action),
        limit=limit,
        next_token=next_token,
    )
