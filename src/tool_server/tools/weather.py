"""Weather tool."""

from __future__ import annotations

from ..adapters.open_meteo import fetch_current_conditions
from ..schemas import WeatherInput, WeatherOutput
from ..settings import ToolServerSettings

# WMO weather interpretation codes, as documented by Open-Meteo.
WEATHER_DESCRIPTIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: int | None) -> str:
    if code in WEATHER_DESCRIPTIONS:
        return WEATHER_DESCRIPTIONS[code]
    return f"Weather code {code}"


async def get_current_weather(payload: WeatherInput, settings: ToolServerSettings, _call_id: str) -> WeatherOutput:
    # Delegate upstream call to adapter; keep tool thin.
    data = await fetch_current_conditions(
        base_url=settings.open_meteo_base_url,
        latitude=payload.latitude,
        longitude=payload.longitude,
        timeout_s=settings.request_timeout_s,
    )
    current = data.get("current") or {}
    return WeatherOutput(
        latitude=payload.latitude,
        longitude=payload.longitude,
        temperature_celsius=current.get("temperature_2m"),
        feels_like_celsius=current.get("apparent_temperature"),
        humidity_percent=current.get("relative_humidity_2m"),
        description=describe_weather_code(current.get("weather_code")),
        wind_speed_kmh=current.get("wind_speed_10m"),
    )
