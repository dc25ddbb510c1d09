"""
WebSocket gateway helpers (API Gateway WebSocket API).

Inbound events carry `requestContext.routeKey` (`$connect`, `$disconnect`, `$default`)
and `requestContext.connectionId`. Replies go out through the management API endpoint
`https://<domainName>/<stage>`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ROUTE_CONNECT = "$connect"
ROUTE_DISCONNECT = "$disconnect"
ROUTE_DEFAULT = "$default"


@dataclass(frozen=True)
class WebSocketEvent:
    route_key: str
    connection_id: str
    domain_name: str | None
    stage: str | None
    body: str | None

    @classmethod
    def from_lambda(cls, event: dict[str, Any]) -> "WebSocketEvent":
        ctx = event.get("requestContext") or {}
        connection_id = ctx.get("connectionId")
        if not connection_id:
            raise ValueError("WebSocket event is missing requestContext.connectionId")
        return cls(
            route_key=str(ctx.get("routeKey") or ""),
            connection_id=str(connection_id),
            domain_name=ctx.get("domainName"),
            stage=ctx.get("stage"),
            body=event.get("body"),
        )


class ConnectionPusher:
    """Posts JSON messages to a single connection via `post_to_connection`."""

    def __init__(self, client: Any):
        self._client = client

    def post(self, connection_id: str, message: BaseModel) -> None:
        data = message.model_dump_json().encode("utf-8")
        self._client.post_to_connection(ConnectionId=connection_id, Data=data)
        logger.debug("Pushed %s bytes to %s", len(data), connection_id)
