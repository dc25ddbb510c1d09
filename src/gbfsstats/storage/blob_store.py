"""S3 I/O helpers for historical snapshots and the per-provider latest pointer."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from botocore.exceptions import ClientError

from gbfsstats.domain.models import CanonicalStats

logger = logging.getLogger(__name__)

HISTORICAL_PREFIX = "historical/"
LATEST_PREFIX = "latest/"


def historical_key(stats: CanonicalStats) -> str:
    """`historical/year=YYYY/month=MM/day=DD/hour=HH/<provider>/<timestamp>.json`."""
    dt = datetime.fromtimestamp(stats.timestamp, tz=timezone.utc)
    return (
        f"{HISTORICAL_PREFIX}year={dt:%Y}/month={dt:%m}/day={dt:%d}/hour={dt:%H}/"
        f"{stats.provider}/{stats.timestamp}.json"
    )


def latest_key(provider: str) -> str:
    return f"{LATEST_PREFIX}{provider}.json"


class BlobStore:
    def __init__(self, s3: Any, bucket: str):
        self.s3 = s3
        self.bucket = bucket

    def write_json(self, key: str, data: dict[str, Any]) -> None:
        self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=json.dumps(data, separators=(",", ":")).encode("utf-8"),
            ContentType="application/json",
        )

    def read_json(self, key: str) -> dict[str, Any] | None:
        """Read JSON file from S3. Returns None if the key does not exist."""
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in {"NoSuchKey", "404"}:
                return None
            raise
        return json.loads(obj["Body"].read().decode("utf-8"))

    def write_snapshot(self, stats: CanonicalStats) -> None:
        """Write the historical copy and replace the provider's latest pointer."""
        payload = stats.model_dump()
        self.write_json(historical_key(stats), payload)
        self.write_json(
            latest_key(stats.provider),
            {**payload, "last_updated": datetime.now(timezone.utc).isoformat()},
        )
        logger.debug("Saved snapshot blobs for %s at %s", stats.provider, stats.timestamp)

    def read_latest(self, provider: str) -> dict[str, Any] | None:
        return self.read_json(latest_key(provider))
