"""
Lambda entry points.

- `collect_handler`: scheduled (every 15 minutes) or HTTP-triggered collection run.
- `cleanup_handler`: daily retention sweep.
- `websocket_handler`: `$connect` / `$disconnect` / `$default` routes of the WebSocket API.
- `realtime_handler`: HTTP point read of the latest snapshot per provider.

Business logic lives in `gbfsstats.services`; these functions only translate between
Lambda events and service calls.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from gbfsstats.config.settings import get_settings
from gbfsstats.core.logging import configure_logging
from gbfsstats.gateway import ROUTE_CONNECT, ROUTE_DEFAULT, ROUTE_DISCONNECT, WebSocketEvent
from gbfsstats.services import factory

configure_logging()
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": True,
}


def _response(status_code: int, body: Any, headers: dict[str, Any] | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {"statusCode": status_code, "body": json.dumps(body)}
    if headers:
        out["headers"] = headers
    return out


def collect_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    try:
        summary = factory.collector().run()
    except Exception as e:
        logger.exception("Fatal error during collection")
        return _response(500, {"message": "Internal server error", "error": str(e)})
    return _response(200, summary.model_dump(mode="json"))


def cleanup_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Sweep expired records. Failures propagate as `CleanupError` / `ConfigurationError`."""
    result = factory.sweeper().run()
    logger.info("Cleanup finished: %s", result.deleted)
    return _response(200, result.model_dump(mode="json", by_alias=True))


def _dispatch(ws: WebSocketEvent) -> None:
    if ws.route_key == ROUTE_CONNECT:
        factory.connection_registry().connect(ws.connection_id)
    elif ws.route_key == ROUTE_DISCONNECT:
        factory.connection_registry().disconnect(ws.connection_id)
    elif ws.route_key == ROUTE_DEFAULT:
        if not ws.domain_name or not ws.stage:
            raise ValueError("WebSocket event is missing requestContext.domainName/stage")
        pusher = factory.pusher(ws.domain_name, ws.stage)
        factory.query_service().handle_message(ws.connection_id, ws.body, pusher)
    else:
        logger.warning("Ignoring unknown route %r", ws.route_key)


def websocket_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    try:
        ws = WebSocketEvent.from_lambda(event)
        logger.info("WebSocket event route=%s connection=%s", ws.route_key, ws.connection_id)
        _dispatch(ws)
    except Exception:
        logger.exception("WebSocket handler error")
        return {"statusCode": 500, "body": "Internal Server Error"}
    return {"statusCode": 200, "body": "OK"}


def realtime_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    try:
        snapshot = factory.latest_reader().read(get_settings().provider_names())
    except Exception:
        logger.exception("Error reading latest snapshots")
        return _response(500, {"error": "Internal server error"})
    return _response(200, snapshot.model_dump(mode="json"), headers=CORS_HEADERS)
