"""
GBFS ingestion client.

This module is responsible only for:
- fetching a provider's GBFS discovery document (gbfs.json),
- locating the `station_information` and `station_status` sub-feeds,
- fetching both and folding them into one `CanonicalStats` snapshot.

It intentionally does not persist anything; see `gbfsstats.services.collector` for that.

Discovery documents come in several layouts. Some publish feeds per language
(`data.en.feeds`, `data.de.feeds`), others publish a flat `data.feeds` list. The
locations are tried in `FEED_LIST_PATHS` order and the first non-empty list wins.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from gbfsstats.config.settings import Settings
from gbfsstats.core.http import get_json
from gbfsstats.core.time import date_partition
from gbfsstats.domain.models import CanonicalStats, ProviderConfig

logger = logging.getLogger(__name__)

FEED_LIST_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "en", "feeds"),
    ("data", "feeds"),
    ("data", "de", "feeds"),
)

STATION_INFORMATION = "station_information"
STATION_STATUS = "station_status"


class FeedError(RuntimeError):
    """A provider's feeds could not be turned into a snapshot."""


class MissingFeedList(FeedError):
    pass


class MissingRequiredFeed(FeedError):
    pass


class FeedSchemaError(FeedError):
    pass


@dataclass(frozen=True)
class StationTotals:
    """Accumulated station counts for one provider."""

    total_stations: int
    total_capacity: int
    total_bikes_available: int
    total_docks_available: int
    active_stations: int


def _dig(doc: Any, path: tuple[str, ...]) -> Any:
    node = doc
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def find_feed_list(discovery: Any) -> list[dict[str, Any]]:
    """Return the sub-feed list of a discovery document.

    Raises:
        MissingFeedList: If none of `FEED_LIST_PATHS` yields a non-empty list.
    """
    for path in FEED_LIST_PATHS:
        feeds = _dig(discovery, path)
        if isinstance(feeds, list) and feeds:
            return [f for f in feeds if isinstance(f, dict)]
    raise MissingFeedList("No feeds found in discovery document")


def find_feed_url(feeds: list[dict[str, Any]], name: str) -> str | None:
    for feed in feeds:
        if feed.get("name") == name and feed.get("url"):
            return str(feed["url"])
    return None


def _stations(payload: Any, feed_name: str) -> list[dict[str, Any]]:
    stations = _dig(payload, ("data", "stations"))
    if not isinstance(stations, list):
        raise FeedSchemaError(f"{feed_name} has no data.stations list")
    return [s for s in stations if isinstance(s, dict)]


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise FeedSchemaError(f"Expected a number, got {value!r}") from e


def is_station_active(status: dict[str, Any]) -> bool:
    return bool(status.get("is_installed")) and bool(status.get("is_renting")) and bool(
        status.get("is_returning")
    )


def summarize_stations(information: Any, status: Any) -> StationTotals:
    """Join station information with station status and accumulate totals.

    Stations without a status entry are skipped (inner join), but still count towards
    `total_stations`, which is the size of the station-information list.
    """
    info_stations = _stations(information, STATION_INFORMATION)
    status_by_id = {
        str(s.get("station_id")): s for s in _stations(status, STATION_STATUS) if s.get("station_id") is not None
    }

    total_capacity = 0
    total_bikes = 0
    total_docks = 0
    active = 0
    for station in info_stations:
        station_status = status_by_id.get(str(station.get("station_id")))
        if station_status is None:
            continue

        total_capacity += _as_int(station.get("capacity"))
        if is_station_active(station_status):
            active += 1
            total_bikes += _as_int(station_status.get("num_bikes_available"))
            total_docks += _as_int(station_status.get("num_docks_available"))

    return StationTotals(
        total_stations=len(info_stations),
        total_capacity=total_capacity,
        total_bikes_available=total_bikes,
        total_docks_available=total_docks,
        active_stations=active,
    )


class GbfsClient:
    """Fetches a provider's GBFS feeds and normalizes them into `CanonicalStats`."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def _get(self, url: str) -> Any:
        return get_json(
            url,
            headers={"User-Agent": self._settings.app.user_agent},
            timeout_seconds=self._settings.app.http_timeout_seconds,
        )

    def collect(self, provider: ProviderConfig) -> CanonicalStats:
        """Return a snapshot for `provider`.

        Raises:
            FeedError: When the discovery document or sub-feeds are unusable.
            httpx.HTTPError: On transport errors, timeouts or non-2xx responses.
            ValueError: If a response body is not valid JSON.
        """
        timestamp = int(time.time())

        discovery = self._get(provider.url)
        try:
            feeds = find_feed_list(discovery)
        except MissingFeedList as e:
            raise MissingFeedList(f"No feeds found for provider {provider.name}") from e

        info_url = find_feed_url(feeds, STATION_INFORMATION)
        status_url = find_feed_url(feeds, STATION_STATUS)
        if not info_url or not status_url:
            raise MissingRequiredFeed(f"Required feeds not found for provider {provider.name}")

        with ThreadPoolExecutor(max_workers=2) as pool:
            info_future = pool.submit(self._get, info_url)
            status_future = pool.submit(self._get, status_url)
            information = info_future.result()
            status = status_future.result()

        totals = summarize_stations(information, status)
        logger.debug(
            "Provider %s: %s stations, %s active", provider.name, totals.total_stations, totals.active_stations
        )
        return CanonicalStats(
            provider=provider.name,
            timestamp=timestamp,
            date=date_partition(timestamp),
            total_stations=totals.total_stations,
            total_capacity=totals.total_capacity,
            total_bikes_available=totals.total_bikes_available,
            total_docks_available=totals.total_docks_available,
            active_stations=totals.active_stations,
            expiry_time=timestamp + self._settings.retention.window_seconds,
        )
