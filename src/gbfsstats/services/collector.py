"""
Collection run: normalize every configured provider and persist the snapshots.

Providers are independent. Each one runs in its own worker, and every worker's outcome is
captured (settle-all), so one provider's stall or failure never blocks or fails another.
There are no retries here; a failed provider waits for the next scheduled run.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from gbfsstats.config.settings import Settings
from gbfsstats.domain.models import CanonicalStats, CollectionSummary, ProviderConfig, ProviderOutcome
from gbfsstats.storage.blob_store import BlobStore
from gbfsstats.storage.stats_table import StatsTable

logger = logging.getLogger(__name__)


class FeedNormalizer(Protocol):
    def collect(self, provider: ProviderConfig) -> CanonicalStats: ...


class SnapshotWriter:
    """Persists one snapshot to the stats table and, when configured, the blob store.

    The table row is the record of a successful collection. The blob copy is a mirror:
    a failure there is logged and does not fail the provider.
    """

    def __init__(self, stats_table: StatsTable, blob_store: BlobStore | None = None):
        self._stats_table = stats_table
        self._blob_store = blob_store

    def write(self, stats: CanonicalStats) -> None:
        self._stats_table.put(stats)
        if self._blob_store is None:
            return
        try:
            self._blob_store.write_snapshot(stats)
        except Exception as e:
            logger.warning("Blob mirror failed for %s at %s: %s", stats.provider, stats.timestamp, e)


class Collector:
    def __init__(self, settings: Settings, normalizer: FeedNormalizer, writer: SnapshotWriter):
        self._settings = settings
        self._normalizer = normalizer
        self._writer = writer

    def _collect_one(self, provider: ProviderConfig) -> ProviderOutcome:
        try:
            stats = self._normalizer.collect(provider)
            self._writer.write(stats)
        except Exception as e:
            logger.error("Error processing %s: %s", provider.name, e)
            return ProviderOutcome(provider=provider.name, status="error", error=str(e) or type(e).__name__)
        logger.info(
            "Collected %s: %s bikes at %s active stations",
            provider.name,
            stats.total_bikes_available,
            stats.active_stations,
        )
        return ProviderOutcome(
            provider=provider.name,
            status="success",
            total_bikes=stats.total_bikes_available,
            active_stations=stats.active_stations,
        )

    def run(self, providers: list[ProviderConfig] | None = None) -> CollectionSummary:
        """Collect every provider and return the run summary."""
        if providers is None:
            providers = self._settings.require_providers()
        logger.info("Collecting %s providers", len(providers))

        results: list[ProviderOutcome] = []
        if providers:
            workers = min(len(providers), self._settings.collector.max_workers)
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._collect_one, p) for p in providers]
                results = [f.result() for f in futures]

        success = sum(1 for r in results if r.status == "success")
        summary = CollectionSummary(
            timestamp=int(time.time()),
            total=len(results),
            success_count=success,
            failure_count=len(results) - success,
            results=results,
        )
        logger.info("Collection finished: %s ok, %s failed", summary.success_count, summary.failure_count)
        return summary
