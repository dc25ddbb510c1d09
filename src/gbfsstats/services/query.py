"""
Range queries over stored stats and the one-reply WebSocket fan-out.

A `getBikeStats` request is answered by querying the `DateIndex` partition of every UTC
date the window touches, merging all providers' records and sorting them by timestamp.

Every inbound message gets exactly one reply on its own connection: `build_reply` turns
any request (valid or not) into either a `bikeStats` or an `error` message, and
`handle_message` sends that single reply.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from gbfsstats.config.settings import Settings
from gbfsstats.core.time import dates_between, parse_datetime, to_epoch_seconds
from gbfsstats.domain.models import BikeStatsMessage, BikeStatsRequest, CanonicalStats, ErrorMessage
from gbfsstats.storage.stats_table import StatsTable

logger = logging.getLogger(__name__)

GET_BIKE_STATS = "getBikeStats"


class Pusher(Protocol):
    def post(self, connection_id: str, message: BaseModel) -> None: ...


class QueryService:
    def __init__(self, settings: Settings, stats_table: StatsTable):
        self._settings = settings
        self._stats_table = stats_table

    def resolve_window(self, start_date: str | None, end_date: str | None, *, now: int | None = None) -> tuple[int, int]:
        """Return `(start, end)` epoch seconds; the trailing window ending now unless both bounds are given.

        Raises:
            ValueError: On unparsable bounds or `start > end`.
        """
        if start_date and end_date:
            start = to_epoch_seconds(parse_datetime(start_date))
            end = to_epoch_seconds(parse_datetime(end_date))
        else:
            end = int(time.time()) if now is None else now
            start = end - self._settings.query.default_window_seconds
        if start > end:
            raise ValueError("startDate must not be after endDate")
        return start, end

    def query(self, start: int, end: int, *, provider: str | None = None) -> list[CanonicalStats]:
        """All records with `start <= timestamp <= end`, across providers, oldest first."""
        results: list[CanonicalStats] = []
        for date in dates_between(start, end):
            logger.debug("Querying partition %s for [%s, %s] provider=%s", date, start, end, provider)
            results.extend(self._stats_table.query_date(date, start, end, provider=provider))
        results.sort(key=lambda r: r.timestamp)
        return results

    def get_bike_stats(self, request: BikeStatsRequest) -> list[CanonicalStats]:
        start, end = self.resolve_window(request.start_date, request.end_date)
        return self.query(start, end, provider=request.provider)

    def build_reply(self, body: str | dict[str, Any] | None) -> BikeStatsMessage | ErrorMessage:
        """Decide the single reply for an inbound message. Never raises."""
        try:
            payload = json.loads(body or "{}") if not isinstance(body, dict) else body
            request = BikeStatsRequest.model_validate(payload)
            if request.action != GET_BIKE_STATS:
                raise ValueError("Invalid action")
            stats = self.get_bike_stats(request)
            logger.info("Returning %s records", len(stats))
            return BikeStatsMessage(data=stats)
        except ValidationError as e:
            logger.error("Invalid request: %s", e)
            return ErrorMessage(message=f"Invalid request: {e.error_count()} validation error(s)")
        except Exception as e:
            logger.error("Error processing message: %s", e)
            return ErrorMessage(message=str(e) or "Unknown error")

    def handle_message(self, connection_id: str, body: str | dict[str, Any] | None, pusher: Pusher) -> None:
        reply = self.build_reply(body)
        pusher.post(connection_id, reply)
