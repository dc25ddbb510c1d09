"""Offline stand-ins for DynamoDB, S3 and the WebSocket management API."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import pytest
from botocore.exceptions import ClientError

from gbfsstats.config.settings import StorageSettings, get_settings
from gbfsstats.core.time import date_partition
from gbfsstats.domain.models import CanonicalStats, ProviderConfig


def _evaluate(condition: Any, item: dict[str, Any]) -> bool:
    """Evaluate a boto3 `conditions` expression (the subset the stats table uses)."""
    expr = condition.get_expression()
    op = expr["operator"]
    values = expr["values"]
    if op == "AND":
        return all(_evaluate(v, item) for v in values)
    value = item.get(values[0].name)
    if op == "=":
        return value == values[1]
    if op == "<":
        return value is not None and value < values[1]
    if op == "BETWEEN":
        return value is not None and values[1] <= value <= values[2]
    raise AssertionError(f"unsupported operator {op}")


def _to_dynamo(item: dict[str, Any]) -> dict[str, Any]:
    return {k: Decimal(v) if isinstance(v, int) and not isinstance(v, bool) else v for k, v in item.items()}


class FakeTable:
    """In-memory DynamoDB table keyed by `key_names`, returning numbers as `Decimal`."""

    def __init__(self, name: str, key_names: tuple[str, ...], page_size: int | None = None):
        self.name = name
        self.key_names = key_names
        self.page_size = page_size
        self.items: dict[tuple, dict[str, Any]] = {}
        self.queries: list[dict[str, Any]] = []
        self.query_error: Exception | None = None

    def _key(self, item: dict[str, Any]) -> tuple:
        return tuple(int(item[k]) if isinstance(item[k], Decimal) else item[k] for k in self.key_names)

    def put_item(self, *, Item: dict[str, Any]) -> dict:
        self.items[self._key(Item)] = dict(Item)
        return {}

    def delete_item(self, *, Key: dict[str, Any]) -> dict:
        self.items.pop(self._key(Key), None)
        return {}

    def _order(self, item: dict[str, Any]) -> tuple:
        ts = item.get("timestamp", 0)
        return int(ts), self._key(item)

    def _page(self, items: list[dict[str, Any]], params: dict[str, Any]) -> dict[str, Any]:
        start = params.get("ExclusiveStartKey")
        if start:
            # Position-based like DynamoDB: the start key may already be deleted.
            boundary = self._order(start)
            items = [i for i in items if self._order(i) > boundary]
        limit = params.get("Limit") or self.page_size
        if self.page_size:
            limit = min(limit, self.page_size)
        resp: dict[str, Any] = {}
        if limit and len(items) > limit:
            items = items[:limit]
            resp["LastEvaluatedKey"] = {k: items[-1][k] for k in self.key_names}
        resp["Items"] = [_to_dynamo(i) for i in items]
        return resp

    def query(self, **params: Any) -> dict[str, Any]:
        self.queries.append(params)
        if self.query_error is not None:
            raise self.query_error
        items = [i for i in self.items.values() if _evaluate(params["KeyConditionExpression"], i)]
        if "FilterExpression" in params:
            items = [i for i in items if _evaluate(params["FilterExpression"], i)]
        items.sort(key=self._order, reverse=params.get("ScanIndexForward") is False)
        return self._page(items, params)

    def scan(self, **params: Any) -> dict[str, Any]:
        items = sorted(self.items.values(), key=self._order)
        return self._page(items, params)


class FakeDynamoResource:
    """Service-resource stand-in: `Table(name)` + `batch_write_item`."""

    def __init__(self, page_size: int | None = None):
        self.page_size = page_size
        self.tables: dict[str, FakeTable] = {}
        self.batch_calls: list[int] = []
        # Per call, how many trailing keys to leave unprocessed (consumed front to back).
        self.unprocessed_plan: list[int] = []
        self.always_unprocessed: set[str] = set()

    def Table(self, name: str) -> FakeTable:
        if name not in self.tables:
            keys = ("connection_id",) if "connection" in name else ("provider", "timestamp")
            self.tables[name] = FakeTable(name, keys, page_size=self.page_size)
        return self.tables[name]

    def batch_write_item(self, *, RequestItems: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
        unprocessed: dict[str, list[dict[str, Any]]] = {}
        for name, requests in RequestItems.items():
            assert len(requests) <= 25
            self.batch_calls.append(len(requests))
            table = self.Table(name)
            keep = self.unprocessed_plan.pop(0) if self.unprocessed_plan else 0
            cut = len(requests) - keep
            left = list(requests[cut:])
            for req in requests[:cut]:
                key = req["DeleteRequest"]["Key"]
                if key["provider"] in self.always_unprocessed:
                    left.append(req)
                    continue
                table.delete_item(Key=key)
            if left:
                unprocessed[name] = left
        return {"UnprocessedItems": unprocessed}


class _Body:
    def __init__(self, data: bytes):
        self._data = data

    def read(self) -> bytes:
        return self._data


class FakeS3:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_keys: set[str] = set()

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict:
        self.objects[Key] = Body
        return {}

    def get_object(self, *, Bucket: str, Key: str) -> dict:
        if Key in self.fail_keys:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": _Body(self.objects[Key])}

    def json(self, key: str) -> dict[str, Any]:
        return json.loads(self.objects[key].decode("utf-8"))


class FakeManagementApi:
    def __init__(self):
        self.posts: list[tuple[str, dict[str, Any]]] = []

    def post_to_connection(self, *, ConnectionId: str, Data: bytes) -> dict:
        self.posts.append((ConnectionId, json.loads(Data.decode("utf-8"))))
        return {}


def make_stats(provider: str, timestamp: int, **overrides: Any) -> CanonicalStats:
    values = {
        "provider": provider,
        "timestamp": timestamp,
        "date": date_partition(timestamp),
        "total_stations": 10,
        "total_capacity": 100,
        "total_bikes_available": 40,
        "total_docks_available": 50,
        "active_stations": 9,
        "expiry_time": timestamp + 30 * 86400,
    }
    values.update(overrides)
    return CanonicalStats(**values)


@pytest.fixture
def settings():
    base = get_settings()
    return base.model_copy(
        update={
            "providers": [
                ProviderConfig(name="citibike", url="https://gbfs.example/citibike/gbfs.json"),
                ProviderConfig(name="nextbike", url="https://gbfs.example/nextbike/gbfs.json"),
            ],
            "storage": StorageSettings(stats_table="bike-stats", connections_table="connections"),
            "retention": base.retention.model_copy(update={"days": 5, "retry_base_delay_seconds": 1.0}),
        }
    )


@pytest.fixture
def dynamodb():
    return FakeDynamoResource()
