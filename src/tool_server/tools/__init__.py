"""Tool registry shared by the orchestrator and the HTTP tool server."""

from __future__ import annotations

import inspect
from typing import Any, Callable

from ..schemas import (
    GeocodeInput,
    GeocodeOutput,
    TipInput,
    TipOutput,
    ToolSpec,
    WeatherInput,
    WeatherOutput,
)
from .geocode import geocode_location
from .tip import calculate_tip
from .weather import get_current_weather

# Handlers may be plain functions or coroutines.
ToolHandler = Callable[[Any, Any, str], Any]

TOOL_SPECS: dict[str, ToolSpec] = {
    "calculate_tip": ToolSpec(
        name="calculate_tip",
        description=(
            "Calculate tip amount and total bill. Takes a bill amount and optional "
            "tip percentage (defaults to 20%)."
        ),
        input_model=TipInput,
        output_model=TipOutput,
    ),
    "geocode_location": ToolSpec(
        name="geocode_location",
        description=(
            "Look up the latitude and longitude of a location. Accepts city names "
            '(e.g. "New York"), specific addresses (e.g. "1600 Amphitheatre Parkway, '
            'Mountain View, CA"), or landmarks (e.g. "Eiffel Tower").'
        ),
        input_model=GeocodeInput,
        output_model=GeocodeOutput,
    ),
    "get_current_weather": ToolSpec(
        name="get_current_weather",
        description=(
            "Get the current weather for a location given its latitude and longitude. "
            "Returns temperature, humidity, and weather description."
        ),
        input_model=WeatherInput,
        output_model=WeatherOutput,
    ),
}

TOOL_HANDLERS: dict[str, ToolHandler] = {
    "calculate_tip": calculate_tip,
    "geocode_location": geocode_location,
    "get_current_weather": get_current_weather,
}


def get_tool_spec(name: str) -> ToolSpec | None:
    return TOOL_SPECS.get(name)


def get_tool_handler(name: str) -> ToolHandler | None:
    return TOOL_HANDLERS.get(name)


def list_tool_specs() -> list[ToolSpec]:
    return list(TOOL_SPECS.values())


async def invoke_handler(handler: ToolHandler, payload: Any, settings: Any, call_id: str) -> Any:
    """Call ``handler`` and await the result when it is a coroutine."""
    result = handler(payload, settings, call_id)
    if inspect.isawaitable(result):
        result = await result
    return result
