"""
Retention sweep: delete stats records older than `retention.days`.

Records also carry `expiry_time` for DynamoDB TTL, but TTL deletion is lazy and can lag
by days, so a daily sweep makes the window exact.

Per provider:
1. page through keys with `timestamp < cutoff`,
2. delete each page in batches of `retention.batch_size`,
3. resubmit only unprocessed keys, at most `retention.max_retries` submissions per batch,
   sleeping `attempt * retention.retry_base_delay_seconds` between them.

A provider that cannot be swept does not stop the others; the run raises `CleanupError`
after every provider was attempted.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from gbfsstats.config.settings import Settings
from gbfsstats.domain.models import SweepResult
from gbfsstats.storage.stats_table import StatsTable, StoreKey

logger = logging.getLogger(__name__)


class CleanupError(RuntimeError):
    """Structured sweep failure; `context` carries what could not be deleted and why."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}

    def as_dict(self) -> dict[str, Any]:
        return {"error": str(self), "context": self.context}


def chunked(items: list[StoreKey], size: int) -> list[list[StoreKey]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class RetentionSweeper:
    def __init__(self, settings: Settings, stats_table: StatsTable):
        self._settings = settings
        self._stats_table = stats_table

    def cutoff(self, now: int | None = None) -> int:
        now = int(time.time()) if now is None else now
        return now - self._settings.retention.window_seconds

    def _delete_batch(self, keys: list[StoreKey]) -> None:
        retention = self._settings.retention
        pending = keys
        attempt = 0
        while True:
            try:
                pending = self._stats_table.delete_batch(pending)
            except Exception as e:
                raise CleanupError(
                    "Failed to process batch delete", {"error": str(e), "items": pending}
                ) from e
            if not pending:
                return
            attempt += 1
            if attempt >= retention.max_retries:
                raise CleanupError("Max retries reached for batch delete", {"unprocessed_items": pending})
            delay = attempt * retention.retry_base_delay_seconds
            logger.warning(
                "%s keys unprocessed; retrying in %.2fs (attempt %s/%s)",
                len(pending),
                delay,
                attempt,
                retention.max_retries,
            )
            time.sleep(delay)

    def sweep_provider(self, provider: str, cutoff: int) -> int:
        """Delete every record of `provider` older than `cutoff`; return how many were deleted."""
        retention = self._settings.retention
        deleted = 0
        start_key: StoreKey | None = None
        while True:
            try:
                keys, start_key = self._stats_table.query_keys_older_than(
                    provider, cutoff, limit=retention.page_size, exclusive_start_key=start_key
                )
            except Exception as e:
                raise CleanupError(
                    f"Failed to query expired items for provider {provider}",
                    {"error": str(e), "deleted": deleted},
                ) from e
            for batch in chunked(keys, retention.batch_size):
                self._delete_batch(batch)
                deleted += len(batch)
            if not start_key:
                break
        logger.info("Successfully cleaned up %s items for provider %s", deleted, provider)
        return deleted

    def run(self, providers: list[str] | None = None, *, now: int | None = None) -> SweepResult:
        if providers is None:
            providers = [p.name for p in self._settings.require_providers()]
        cutoff = self.cutoff(now)
        logger.info("Sweeping %s providers, cutoff=%s", len(providers), cutoff)

        deleted: dict[str, int] = {}
        failed: dict[str, Any] = {}
        for provider in providers:
            try:
                deleted[provider] = self.sweep_provider(provider, cutoff)
            except CleanupError as e:
                logger.error("Failed to cleanup data for provider %s: %s %s", provider, e, e.context)
                failed[provider] = e.as_dict()

        if failed:
            raise CleanupError(
                "Failed to complete cleanup process",
                {"failed_providers": failed, "deleted": deleted},
            )
        return SweepResult(providers_processed=len(providers), deleted=deleted)
