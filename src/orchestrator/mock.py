"""Heuristic mock model service: enables the full loop without an API key.

It speaks the same item shapes as the Responses API, so the engine, the
dispatcher and the stream demultiplexer run unchanged against it.
"""

from __future__ import annotations

import itertools
import json
import re
from typing import Any, AsyncIterator

from .items import ModelResponse, ResponseCompleted, StreamEvent, TextDelta
from .service import ModelRequest

GREETING = "I can calculate tips, look up where a place is, or check the current weather. What would you like to know?"


class MockModelService:
    def __init__(self, chunk_size: int = 12) -> None:
        self._chunk_size = chunk_size
        self._ids = itertools.count(1)

    async def create(self, request: ModelRequest) -> ModelResponse:
        return ModelResponse.from_raw(self._respond(request.input))

    async def stream(self, request: ModelRequest) -> AsyncIterator[StreamEvent]:
        response = ModelResponse.from_raw(self._respond(request.input))
        text = response.output_text
        for start in range(0, len(text), self._chunk_size):
            yield TextDelta(delta=text[start : start + self._chunk_size])
        yield ResponseCompleted(response=response)

    def _respond(self, items: list[dict[str, Any]]) -> dict[str, Any]:
        query = _last_user_text(items)
        if items and items[-1].get("type") == "function_call_output":
            return self._after_tools(items, query)
        return self._plan(query)

    def _plan(self, query: str) -> dict[str, Any]:
        if re.search(r"\btip\b|小费", query, re.IGNORECASE):
            percent = re.search(r"(\d+(?:\.\d+)?)\s*%", query)
            remainder = query[: percent.start()] + query[percent.end() :] if percent else query
            numbers = re.findall(r"\d+(?:\.\d+)?", remainder)
            if numbers:
                args: dict[str, Any] = {"bill_amount": float(numbers[0])}
                if percent:
                    args["tip_percentage"] = float(percent.group(1))
                return self._call("calculate_tip", args)
        location = _extract_location(query)
        if re.search(r"weather|天气", query, re.IGNORECASE) or re.search(r"where is|coordinates", query, re.IGNORECASE):
            if location:
                return self._call("geocode_location", {"location": location})
            return self._message("Which location do you mean?")
        return self._message(GREETING)

    def _after_tools(self, items: list[dict[str, Any]], query: str) -> dict[str, Any]:
        names = {item["call_id"]: item["name"] for item in items if item.get("type") == "function_call"}
        outputs: list[tuple[str, Any]] = []
        for item in reversed(items):
            if item.get("type") != "function_call_output":
                break
            outputs.append((names.get(item["call_id"], "tool"), json.loads(item["output"])))
        outputs.reverse()

        wants_weather = re.search(r"weather|天气", query, re.IGNORECASE)
        for name, payload in outputs:
            if name == "geocode_location" and wants_weather and "error" not in payload:
                return self._call(
                    "get_current_weather",
                    {"latitude": payload["latitude"], "longitude": payload["longitude"]},
                )
        return self._message(" ".join(_describe(name, payload) for name, payload in outputs))

    def _call(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        n = next(self._ids)
        return {
            "id": f"resp_mock_{n}",
            "output": [
                {
                    "type": "function_call",
                    "id": f"fc_mock_{n}",
                    "call_id": f"call_mock_{n}",
                    "name": name,
                    "arguments": json.dumps(args),
                    "status": "completed",
                }
            ],
        }

    def _message(self, text: str) -> dict[str, Any]:
        n = next(self._ids)
        return {
            "id": f"resp_mock_{n}",
            "output": [
                {
                    "type": "message",
                    "id": f"msg_mock_{n}",
                    "role": "assistant",
                    "status": "completed",
                    "content": [{"type": "output_text", "text": text, "annotations": []}],
                }
            ],
        }


def _last_user_text(items: list[dict[str, Any]]) -> str:
    for item in reversed(items):
        if item.get("role") == "user" and isinstance(item.get("content"), str):
            return item["content"]
    return ""


def _extract_location(text: str) -> str | None:
    match = re.search(r"\b(?:in|is|for)\s+(?:the\s+)?([A-Z][\w'.-]*(?:\s+[A-Z][\w'.-]*)*)", text)
    return match.group(1) if match else None


def _describe(name: str, payload: Any) -> str:
    if isinstance(payload, dict) and "error" in payload:
        error = payload["error"] or {}
        return f"The {name} tool failed: {error.get('message', 'unknown error')}."
    if name == "calculate_tip":
        return (
            f"A {payload['tip_percentage']:g}% tip on ${payload['original_bill']:.2f} is "
            f"${payload['tip_amount']:.2f}, for a total of ${payload['total_amount']:.2f}."
        )
    if name == "geocode_location":
        place = payload.get("display_name") or payload["location"]
        return f"{place} is at latitude {payload['latitude']:.4f}, longitude {payload['longitude']:.4f}."
    if name == "get_current_weather":
        return (
            f"Current weather: {payload['description']}, {payload.get('temperature_celsius')}°C "
            f"(feels like {payload.get('feels_like_celsius')}°C), humidity {payload.get('humidity_percent')}%."
        )
    return f"{name} returned {json.dumps(payload, ensure_ascii=False)}."
