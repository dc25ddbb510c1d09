"""
API routes.

Endpoints:
- POST `/api/collect`: run one collection over all configured providers.
- POST `/api/cleanup`: run the retention sweep.
- GET  `/api/realtime`: latest snapshot per provider.
- GET  `/api/stats`: stats in a time window (same semantics as the WebSocket `getBikeStats`).
- GET  `/api/providers`: configured providers.
- GET  `/api/health`: liveness.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from gbfsstats.config.settings import ConfigurationError, get_settings
from gbfsstats.domain.models import BikeStatsMessage, CollectionSummary, LatestSnapshot
from gbfsstats.services import factory
from gbfsstats.services.retention import CleanupError

router = APIRouter()


def _config_error(e: ConfigurationError) -> HTTPException:
    return HTTPException(status_code=500, detail={"code": "CONFIGURATION_ERROR", "message": str(e)})


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok"}


@router.get("/api/providers")
def get_providers() -> dict:
    """Return configured providers (name + discovery URL)."""
    return {"providers": [p.model_dump() for p in get_settings().providers]}


@router.post("/api/collect", response_model=CollectionSummary)
def post_collect() -> CollectionSummary:
    try:
        return factory.collector().run()
    except ConfigurationError as e:
        raise _config_error(e) from e


@router.post("/api/cleanup")
def post_cleanup() -> dict:
    try:
        result = factory.sweeper().run()
    except ConfigurationError as e:
        raise _config_error(e) from e
    except CleanupError as e:
        raise HTTPException(
            status_code=500,
            detail={"code": "CLEANUP_ERROR", "message": str(e), "context": e.context},
        ) from e
    return result.model_dump(mode="json", by_alias=True)


@router.get("/api/realtime", response_model=LatestSnapshot)
def get_realtime() -> LatestSnapshot:
    try:
        return factory.latest_reader().read(get_settings().provider_names())
    except ConfigurationError as e:
        raise _config_error(e) from e


@router.get("/api/stats", response_model=BikeStatsMessage)
def get_stats(
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    provider: str | None = None,
) -> BikeStatsMessage:
    """Return stats for the window; the trailing hour when a bound is missing."""
    try:
        service = factory.query_service()
    except ConfigurationError as e:
        raise _config_error(e) from e

    try:
        start, end = service.resolve_window(start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)}) from e

    try:
        return BikeStatsMessage(data=service.query(start, end, provider=provider))
    except Exception as e:
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(e)}) from e
