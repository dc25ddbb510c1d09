"""Latest-snapshot point reads (one record per provider)."""

from __future__ import annotations

import logging
import time
from typing import Any

from gbfsstats.domain.models import LatestSnapshot
from gbfsstats.storage.blob_store import BlobStore
from gbfsstats.storage.stats_table import StatsTable

logger = logging.getLogger(__name__)


class LatestSnapshotReader:
    """Reads the `latest/<provider>.json` blobs, or the newest table item when no bucket is set."""

    def __init__(self, *, blob_store: BlobStore | None = None, stats_table: StatsTable | None = None):
        if blob_store is None and stats_table is None:
            raise ValueError("LatestSnapshotReader needs a blob store or a stats table")
        self._blob_store = blob_store
        self._stats_table = stats_table

    def _read(self, provider: str) -> dict[str, Any] | None:
        if self._blob_store is not None:
            return self._blob_store.read_latest(provider)
        stats = self._stats_table.latest(provider)
        return stats.model_dump() if stats else None

    def read(self, providers: list[str]) -> LatestSnapshot:
        """Providers without a snapshot, or whose read fails, are left out."""
        snapshots: list[dict[str, Any]] = []
        for provider in providers:
            try:
                snapshot = self._read(provider)
            except Exception as e:
                logger.error("Error fetching data for %s: %s", provider, e)
                continue
            if snapshot:
                snapshots.append(snapshot)
        return LatestSnapshot(timestamp=int(time.time()), providers=snapshots)
