"""Shared tool schemas (single source of truth).

The orchestrator and the tool server both import these models to avoid drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field


class ToolError(BaseModel):
    """Normalized error payload returned by tools."""
    code: str
    message: str
    details: dict[str, Any] | None = None


class ToolMeta(BaseModel):
    """Metadata attached to tool responses for observability."""
    tool_name: str
    call_id: str
    latency_ms: int | None = None
    source: str | None = None


class ToolResponse(BaseModel):
    """Unified response wrapper for all tools."""
    ok: bool
    data: Any | None = None
    error: ToolError | None = None
    meta: ToolMeta


class TipInput(BaseModel):
    """Input for the tip calculator."""
    bill_amount: float = Field(..., ge=0, description="The original bill amount in dollars (e.g., 50.00)")
    tip_percentage: float | None = Field(
        default=None,
        ge=0,
        description="The tip percentage to apply (e.g., 20 for 20%). Defaults to 20 if not provided.",
    )


class TipOutput(BaseModel):
    """Output for the tip calculator."""
    original_bill: float
    tip_percentage: float
    tip_amount: float
    total_amount: float


class GeocodeInput(BaseModel):
    """Input for geocoding."""
    location: str = Field(
        ...,
        min_length=1,
        description="The location to geocode: a city name, street address, or landmark name",
    )


class GeocodeOutput(BaseModel):
    """Output for geocoding."""
    location: str
    latitude: float
    longitude: float
    display_name: str | None = None


class WeatherInput(BaseModel):
    """Input for current weather."""
    latitude: float = Field(..., ge=-90, le=90, description="Latitude of the location")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude of the location")


class WeatherOutput(BaseModel):
    """Output for current weather."""
    latitude: float
    longitude: float
    temperature_celsius: float | None = None
    feels_like_celsius: float | None = None
    humidity_percent: float | None = None
    description: str
    wind_speed_kmh: float | None = None


@dataclass(frozen=True)
class ToolSpec:
    """Tool registry metadata used by the orchestrator and tool server."""
    name: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    strict: bool = False
