"""Registry of open WebSocket connections (DynamoDB table keyed by `connection_id`)."""

from __future__ import annotations

import logging
import time
from typing import Any

from gbfsstats.domain.models import ConnectionRecord

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    def __init__(self, dynamodb: Any, table_name: str):
        self._table = dynamodb.Table(table_name)

    def connect(self, connection_id: str) -> ConnectionRecord:
        """Record an open connection; a repeated connect overwrites the previous record."""
        record = ConnectionRecord(connection_id=connection_id, timestamp=int(time.time()))
        logger.info("Connected: %s", connection_id)
        self._table.put_item(Item=record.model_dump())
        return record

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection. Deleting an unknown id is a no-op."""
        logger.info("Disconnected: %s", connection_id)
        self._table.delete_item(Key={"connection_id": connection_id})
