"""Geocoding tool."""

from __future__ import annotations

from ..adapters.nominatim import search_location
from ..schemas import GeocodeInput, GeocodeOutput
from ..settings import ToolServerSettings


async def geocode_location(payload: GeocodeInput, settings: ToolServerSettings, _call_id: str) -> GeocodeOutput:
    match = await search_location(
        base_url=settings.nominatim_base_url,
        query=payload.location,
        user_agent=settings.user_agent,
        timeout_s=settings.request_timeout_s,
    )
    # Nominatim returns coordinates as strings.
    return GeocodeOutput(
        location=payload.location,
        latitude=float(match["lat"]),
        longitude=float(match["lon"]),
        display_name=match.get("display_name"),
    )
