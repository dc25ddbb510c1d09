"""
Process-wide component wiring.

Clients are built once per process (cached) from settings and passed into component
constructors; components themselves never reach for globals. Tests replace these
factories with stubs via `monkeypatch`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from gbfsstats.config.settings import get_settings
from gbfsstats.gateway import ConnectionPusher
from gbfsstats.ingestion.gbfs_client import GbfsClient
from gbfsstats.services.collector import Collector, SnapshotWriter
from gbfsstats.services.query import QueryService
from gbfsstats.services.realtime import LatestSnapshotReader
from gbfsstats.services.retention import RetentionSweeper
from gbfsstats.storage.aws import dynamodb_resource, management_api_client, management_endpoint, s3_client
from gbfsstats.storage.blob_store import BlobStore
from gbfsstats.storage.connections import ConnectionRegistry
from gbfsstats.storage.stats_table import StatsTable


@lru_cache
def dynamodb() -> Any:
    return dynamodb_resource(get_settings())


@lru_cache
def stats_table() -> StatsTable:
    settings = get_settings()
    return StatsTable(
        dynamodb(),
        settings.storage.require_stats_table(),
        date_index_name=settings.query.date_index_name,
    )


@lru_cache
def blob_store() -> BlobStore | None:
    settings = get_settings()
    if not settings.storage.bucket:
        return None
    return BlobStore(s3_client(settings), settings.storage.bucket)


@lru_cache
def collector() -> Collector:
    settings = get_settings()
    return Collector(settings, GbfsClient(settings), SnapshotWriter(stats_table(), blob_store()))


@lru_cache
def sweeper() -> RetentionSweeper:
    return RetentionSweeper(get_settings(), stats_table())


@lru_cache
def query_service() -> QueryService:
    return QueryService(get_settings(), stats_table())


@lru_cache
def connection_registry() -> ConnectionRegistry:
    return ConnectionRegistry(dynamodb(), get_settings().storage.require_connections_table())


@lru_cache
def latest_reader() -> LatestSnapshotReader:
    store = blob_store()
    if store is not None:
        return LatestSnapshotReader(blob_store=store)
    return LatestSnapshotReader(stats_table=stats_table())


@lru_cache
def pusher(domain_name: str, stage: str) -> ConnectionPusher:
    endpoint = management_endpoint(domain_name, stage)
    return ConnectionPusher(management_api_client(get_settings(), endpoint))
