"""Nominatim (OpenStreetMap) geocoding adapter.

No API key is required, but Nominatim rejects requests without a User-Agent.
"""

from __future__ import annotations

import httpx

from . import AdapterError


async def search_location(
    *,
    base_url: str,
    query: str,
    user_agent: str,
    timeout_s: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Return the best match for ``query`` as a raw Nominatim record."""
    params = {"q": query, "format": "json", "limit": 1}
    url = f"{base_url}/search"
    try:
        async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
            resp = await client.get(url, params=params, headers={"User-Agent": user_agent})
    except httpx.RequestError as exc:
        raise AdapterError("UPSTREAM_UNAVAILABLE", str(exc)) from exc

    if resp.status_code >= 400:
        raise AdapterError(
            "UPSTREAM_ERROR",
            f"Nominatim returned {resp.status_code}",
            {"status_code": resp.status_code},
        )
    data = resp.json()
    if not data:
        raise AdapterError("NOT_FOUND", f'No results found for "{query}"', {"location": query})
    return data[0]
