"""
DynamoDB access for `CanonicalStats` records.

Table layout:
- primary key `(provider, timestamp)`
- global secondary index `DateIndex` keyed by `(date, timestamp)`
- TTL attribute `expiry_time`

The document API returns numbers as `Decimal`; they are converted back to `int` before
records leave this module.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from gbfsstats.domain.models import CanonicalStats

logger = logging.getLogger(__name__)

PARTITION_KEY = "provider"
SORT_KEY = "timestamp"

StoreKey = dict[str, Any]


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def item_to_stats(item: dict[str, Any]) -> CanonicalStats:
    fields = CanonicalStats.model_fields
    return CanonicalStats.model_validate({k: _plain(v) for k, v in item.items() if k in fields})


def _key_of(item: dict[str, Any]) -> StoreKey:
    return {PARTITION_KEY: item[PARTITION_KEY], SORT_KEY: _plain(item[SORT_KEY])}


class StatsTable:
    """Stats table wrapper over a boto3 DynamoDB service resource."""

    def __init__(self, dynamodb: Any, table_name: str, *, date_index_name: str = "DateIndex"):
        self._dynamodb = dynamodb
        self._table_name = table_name
        self._table = dynamodb.Table(table_name)
        self._date_index_name = date_index_name

    @property
    def table_name(self) -> str:
        return self._table_name

    def put(self, stats: CanonicalStats) -> None:
        self._table.put_item(Item=stats.model_dump())

    def query_date(
        self, date: str, start_timestamp: int, end_timestamp: int, *, provider: str | None = None
    ) -> list[CanonicalStats]:
        """Query one `DateIndex` partition for `start <= timestamp <= end`, following pages."""
        params: dict[str, Any] = {
            "IndexName": self._date_index_name,
            "KeyConditionExpression": Key("date").eq(date) & Key(SORT_KEY).between(start_timestamp, end_timestamp),
        }
        if provider:
            params["FilterExpression"] = Attr(PARTITION_KEY).eq(provider)

        out: list[CanonicalStats] = []
        while True:
            resp = self._table.query(**params)
            out.extend(item_to_stats(item) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return out
            params["ExclusiveStartKey"] = last_key

    def query_keys_older_than(
        self,
        provider: str,
        cutoff: int,
        *,
        limit: int,
        exclusive_start_key: StoreKey | None = None,
    ) -> tuple[list[StoreKey], StoreKey | None]:
        """Return one page of keys with `timestamp < cutoff` plus the key to resume from."""
        params: dict[str, Any] = {
            "KeyConditionExpression": Key(PARTITION_KEY).eq(provider) & Key(SORT_KEY).lt(cutoff),
            "ProjectionExpression": "#p, #ts",
            "ExpressionAttributeNames": {"#p": PARTITION_KEY, "#ts": SORT_KEY},
            "Limit": limit,
        }
        if exclusive_start_key:
            params["ExclusiveStartKey"] = exclusive_start_key
        resp = self._table.query(**params)
        keys = [_key_of(item) for item in resp.get("Items", [])]
        return keys, resp.get("LastEvaluatedKey")

    def delete_batch(self, keys: list[StoreKey]) -> list[StoreKey]:
        """Submit one BatchWriteItem of deletes; return the keys the store left unprocessed."""
        if not keys:
            return []
        resp = self._dynamodb.batch_write_item(
            RequestItems={self._table_name: [{"DeleteRequest": {"Key": key}} for key in keys]}
        )
        unprocessed = (resp.get("UnprocessedItems") or {}).get(self._table_name) or []
        return [_key_of(req["DeleteRequest"]["Key"]) for req in unprocessed if "DeleteRequest" in req]

    def latest(self, provider: str) -> CanonicalStats | None:
        resp = self._table.query(
            KeyConditionExpression=Key(PARTITION_KEY).eq(provider),
            ScanIndexForward=False,
            Limit=1,
        )
        items = resp.get("Items", [])
        return item_to_stats(items[0]) if items else None

    def scan_providers(self) -> list[str]:
        """Distinct provider ids present in the table (full projection scan)."""
        providers: set[str] = set()
        params: dict[str, Any] = {
            "ProjectionExpression": "#p",
            "ExpressionAttributeNames": {"#p": PARTITION_KEY},
        }
        while True:
            resp = self._table.scan(**params)
            for item in resp.get("Items", []):
                if item.get(PARTITION_KEY):
                    providers.add(str(item[PARTITION_KEY]))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key
        logger.info("Discovered %s providers in %s", len(providers), self._table_name)
        return sorted(providers)
