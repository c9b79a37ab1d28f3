from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator

from botocore.config import Config

from .client import table_resource
from .errors import DdbInternal
from .pagination import decode_next_token, encode_next_token
from .retry import RetryPolicy, ddb_call


def plain(value: Any) -> Any:
    """Convert boto3 Decimals (recursively) into int/float for JSON responses."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain(v) for v in value]
    if isinstance(value, set):
        return sorted(plain(v) for v in value)
    return value


@dataclass(slots=True)
class Page:
    items: list[dict[str, Any]]
    next_token: str | None


class DynamoTable:
    def __init__(self, *, table_name: str, config: Config | None = None):
        self.table_name = str(table_name)
        self._table = table_resource(self.table_name, config=config)

    # --- basic operations ---

    def get_item(self, *, key: dict[str, Any], consistent_read: bool = False) -> dict[str, Any] | None:
        def _op():
            resp = self._table.get_item(Key=key, ConsistentRead=bool(consistent_read))
            return resp.get("Item")

        item = ddb_call("GetItem", _op, table_name=self.table_name, key=key)
        return plain(item) if item else None

    def put_item(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        def _op():
            kwargs: dict[str, Any] = {"Item": item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            if expression_attribute_values:
                kwargs["ExpressionAttributeValues"] = expression_attribute_values
            return self._table.put_item(**kwargs)

        ddb_call("PutItem", _op, table_name=self.table_name, retry_policy=retry_policy)

    def delete_item(
        self,
        *,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
    ) -> dict[str, Any] | None:
        def _op():
            kwargs: dict[str, Any] = {"Key": key, "ReturnValues": "ALL_OLD"}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            resp = self._table.delete_item(**kwargs)
            return resp.get("Attributes")

        old = ddb_call("DeleteItem", _op, table_name=self.table_name, key=key)
        return plain(old) if old else None

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        def _op():
            kwargs: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update_expression,
                "ExpressionAttributeValues": expression_attribute_values,
                "ReturnValues": return_values,
            }
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            resp = self._table.update_item(**kwargs)
            return resp.get("Attributes")

        attrs = ddb_call("UpdateItem", _op, table_name=self.table_name, key=key)
        return plain(attrs) if attrs else None

    # --- query/scan pagination ---

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int | None = 50,
        scan_index_forward: bool = True,
        filter_expression: Any | None = None,
        next_token: str | None = None,
    ) -> Page:
        lek = decode_next_token(next_token)

        def _op():
            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition_expression,
                "ScanIndexForward": bool(scan_index_forward),
            }
            if limit:
                kwargs["Limit"] = max(1, min(1000, int(limit)))
            if index_name:
                kwargs["IndexName"] = index_name
            if filter_expression is not None:
                kwargs["FilterExpression"] = filter_expression
            # Only pass ExclusiveStartKey when present.
            if lek:
                kwargs["ExclusiveStartKey"] = lek
            return self._table.query(**kwargs)

        resp = ddb_call("Query", _op, table_name=self.table_name)
        items = [plain(it) for it in (resp.get("Items") or [])]
        return Page(items=items, next_token=encode_next_token(resp.get("LastEvaluatedKey")))

    def scan_page(
        self,
        *,
        limit: int | None = 50,
        filter_expression: Any | None = None,
        next_token: str | None = None,
    ) -> Page:
        lek = decode_next_token(next_token)

        def _op():
            kwargs: dict[str, Any] = {}
            if limit:
                kwargs["Limit"] = max(1, min(1000, int(limit)))
            if filter_expression is not None:
                kwargs["FilterExpression"] = filter_expression
            if lek:
                kwargs["ExclusiveStartKey"] = lek
            return self._table.scan(**kwargs)

        resp = ddb_call("Scan", _op, table_name=self.table_name)
        items = [plain(it) for it in (resp.get("Items") or [])]
        return Page(items=items, next_token=encode_next_token(resp.get("LastEvaluatedKey")))

    def iter_query(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        """Follow continuation tokens until the query is exhausted."""
        token: str | None = None
        while True:
            pg = self.query_page(limit=None, next_token=token, **kwargs)
            yield from pg.items
            token = pg.next_token
            if not token:
                return

    def iter_scan(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        token: str | None = None
        while True:
            pg = self.scan_page(limit=None, next_token=token, **kwargs)
            yield from pg.items
            token = pg.next_token
            if not token:
                return


def get_table(table_name: str | None, *, setting_name: str, config: Config | None = None) -> DynamoTable:
    name = str(table_name or "").strip()
    if not name:
        raise DdbInternal(message=f"{setting_name} is not set", operation="Config")
    return DynamoTable(table_name=name, config=config)
