import httpx
import pytest

from tool_server.adapters import AdapterError
from tool_server.adapters.nominatim import search_location
from tool_server.adapters.open_meteo import fetch_current_conditions
from tool_server.schemas import GeocodeInput, TipInput, WeatherInput
from tool_server.tools import geocode as geocode_tool
from tool_server.tools import weather as weather_tool
from tool_server.tools.tip import calculate_tip
from tool_server.tools.weather import describe_weather_code


def test_tip_uses_default_percentage(tool_settings):
    result = calculate_tip(TipInput(bill_amount=50), tool_settings, "c1")

    assert result.tip_percentage == 20
    assert result.tip_amount == 10
    assert result.total_amount == 60


def test_tip_rounds_to_cents(tool_settings):
    result = calculate_tip(TipInput(bill_amount=47.5, tip_percentage=18), tool_settings, "c1")

    assert result.tip_amount == 8.55
    assert result.total_amount == 56.05


def test_tip_rejects_negative_bill():
    with pytest.raises(ValueError):
        TipInput(bill_amount=-1)


def test_weather_codes_have_descriptions():
    assert describe_weather_code(0) == "Clear sky"
    assert describe_weather_code(95) == "Thunderstorm"
    assert describe_weather_code(42) == "Weather code 42"


@pytest.mark.asyncio
async def test_nominatim_returns_first_match():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["q"] == "Paris"
        assert request.headers["User-Agent"] == "tests/1.0"
        return httpx.Response(200, json=[{"lat": "48.85", "lon": "2.35", "display_name": "Paris, France"}])

    match = await search_location(
        base_url="https://geo.test",
        query="Paris",
        user_agent="tests/1.0",
        timeout_s=1.0,
        transport=httpx.MockTransport(handler),
    )

    assert match["display_name"] == "Paris, France"


@pytest.mark.asyncio
async def test_nominatim_empty_result_is_not_found():
    with pytest.raises(AdapterError) as excinfo:
        await search_location(
            base_url="https://geo.test",
            query="Atlantis",
            user_agent="tests/1.0",
            timeout_s=1.0,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])),
        )

    assert excinfo.value.code == "NOT_FOUND"
    assert "Atlantis" in excinfo.value.message


@pytest.mark.asyncio
async def test_nominatim_http_error_is_upstream_error():
    with pytest.raises(AdapterError) as excinfo:
        await search_location(
            base_url="https://geo.test",
            query="Paris",
            user_agent="tests/1.0",
            timeout_s=1.0,
            transport=httpx.MockTransport(lambda request: httpx.Response(429, text="slow down")),
        )

    assert excinfo.value.code == "UPSTREAM_ERROR"
    assert excinfo.value.details == {"status_code": 429}


@pytest.mark.asyncio
async def test_open_meteo_requests_current_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "weather_code" in request.url.params["current"]
        return httpx.Response(200, json={"current": {"temperature_2m": 12.5, "weather_code": 3}})

    data = await fetch_current_conditions(
        base_url="https://wx.test",
        latitude=48.85,
        longitude=2.35,
        timeout_s=1.0,
        transport=httpx.MockTransport(handler),
    )

    assert data["current"]["temperature_2m"] == 12.5


@pytest.mark.asyncio
async def test_open_meteo_error_body_is_upstream_error():
    with pytest.raises(AdapterError) as excinfo:
        await fetch_current_conditions(
            base_url="https://wx.test",
            latitude=999,
            longitude=0,
            timeout_s=1.0,
            transport=httpx.MockTransport(
                lambda request: httpx.Response(400, json={"error": True, "reason": "Latitude out of range"})
            ),
        )

    assert excinfo.value.code == "UPSTREAM_ERROR"
    assert excinfo.value.message == "Weather API error: Latitude out of range"


@pytest.mark.asyncio
async def test_geocode_tool_converts_coordinates(monkeypatch, tool_settings):
    async def fake_search(**kwargs):
        assert kwargs["query"] == "Tokyo"
        return {"lat": "35.68", "lon": "139.76", "display_name": "Tokyo, Japan"}

    monkeypatch.setattr(geocode_tool, "search_location", fake_search)

    result = await geocode_tool.geocode_location(GeocodeInput(location="Tokyo"), tool_settings, "c1")

    assert result.latitude == 35.68
    assert result.longitude == 139.76
    assert result.display_name == "Tokyo, Japan"


@pytest.mark.asyncio
async def test_weather_tool_maps_current_conditions(monkeypatch, tool_settings):
    async def fake_fetch(**_kwargs):
        return {
            "current": {
                "temperature_2m": 21.0,
                "apparent_temperature": 20.0,
                "relative_humidity_2m": 55,
                "weather_code": 2,
                "wind_speed_10m": 9.5,
            }
        }

    monkeypatch.setattr(weather_tool, "fetch_current_conditions", fake_fetch)

    result = await weather_tool.get_current_weather(WeatherInput(latitude=1.0, longitude=2.0), tool_settings, "c1")

    assert result.temperature_celsius == 21.0
    assert result.humidity_percent == 55
    assert result.description == "Partly cloudy"
