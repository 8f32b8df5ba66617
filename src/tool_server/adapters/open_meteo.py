"""Open-Meteo adapter (no API key required).

Encapsulates upstream API details and error normalization.
"""

from __future__ import annotations

import httpx

from . import AdapterError

CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "weather_code",
    "wind_speed_10m",
)


def _raise_for_status(data: dict) -> None:
    if data.get("error"):
        raise AdapterError(
            "UPSTREAM_ERROR",
            f"Weather API error: {data.get('reason') or 'Unknown error'}",
        )


async def fetch_current_conditions(
    *,
    base_url: str,
    latitude: float,
    longitude: float,
    timeout_s: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": ",".join(CURRENT_FIELDS),
    }
    url = f"{base_url}/forecast"
    try:
        async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
            resp = await client.get(url, params=params)
    except httpx.RequestError as exc:
        raise AdapterError("UPSTREAM_UNAVAILABLE", f"Failed to fetch weather: {exc}") from exc
    try:
        data = resp.json()
    except ValueError as exc:
        raise AdapterError(
            "UPSTREAM_ERROR",
            f"Weather API returned {resp.status_code}",
            {"status_code": resp.status_code},
        ) from exc
    _raise_for_status(data)
    return data
