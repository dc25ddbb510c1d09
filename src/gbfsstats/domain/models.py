"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- configuration inputs (`ProviderConfig`)
- the canonical per-provider snapshot written by the collector (`CanonicalStats`)
- WebSocket request/response payloads (`BikeStatsRequest`, `BikeStatsMessage`, `ErrorMessage`)
- run summaries returned to schedulers and HTTP callers

Keeping these models in one place helps:
- validation (reject bad inputs early),
- consistent JSON output across Lambda/API/CLI.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProviderConfig(BaseModel):
    """A GBFS system: display name + URL of its discovery document (gbfs.json)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class CanonicalStats(BaseModel):
    """One statistics snapshot for one provider, taken at collection time."""

    provider: str
    timestamp: int = Field(..., ge=0)
    date: str
    total_stations: int = Field(..., ge=0)
    total_capacity: int = Field(..., ge=0)
    total_bikes_available: int = Field(..., ge=0)
    total_docks_available: int = Field(..., ge=0)
    active_stations: int = Field(..., ge=0)
    expiry_time: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _validate_active(self) -> "CanonicalStats":
        if self.active_stations > self.total_stations:
            raise ValueError("active_stations cannot exceed total_stations")
        return self


class ConnectionRecord(BaseModel):
    """An open WebSocket connection."""

    connection_id: str
    timestamp: int


class BikeStatsRequest(BaseModel):
    """Inbound WebSocket message asking for stats in a time window."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    start_date: str | None = Field(default=None, alias="startDate")
    end_date: str | None = Field(default=None, alias="endDate")
    provider: str | None = None


class BikeStatsMessage(BaseModel):
    type: Literal["bikeStats"] = "bikeStats"
    data: list[CanonicalStats] = Field(default_factory=list)


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str


class ProviderOutcome(BaseModel):
    """Result of collecting one provider in one run."""

    provider: str
    status: Literal["success", "error"]
    total_bikes: int | None = None
    active_stations: int | None = None
    error: str | None = None


class CollectionSummary(BaseModel):
    """What a collection run returns to its trigger."""

    message: str = "Data collection completed"
    timestamp: int
    total: int
    success_count: int
    failure_count: int
    results: list[ProviderOutcome] = Field(default_factory=list)


class SweepResult(BaseModel):
    """What a retention sweep returns when every provider was swept."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Cleanup completed successfully"
    providers_processed: int = Field(..., alias="providersProcessed")
    deleted: dict[str, int] = Field(default_factory=dict)


class LatestSnapshot(BaseModel):
    """Point-read response: most recent snapshot per provider."""

    timestamp: int
    providers: list[dict[str, Any]] = Field(default_factory=list)
