"""Command-line client for the orchestrator."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

import httpx

STATUS_MARKS = {"pending": "…", "completed": "✓", "error": "✗"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ask the tool-loop orchestrator a question")
    parser.add_argument("query", help="User query")
    parser.add_argument("--agent-url", default="http://localhost:7002", help="Orchestrator base URL")
    parser.add_argument("--timeout", type=float, default=120.0, help="Request timeout seconds")
    parser.add_argument("--stream", action="store_true", help="Print the answer as it is generated")
    parser.add_argument("--verbose", action="store_true", help="Print trace steps")
    parser.add_argument("--clear", action="store_true", help="Start a new conversation first")
    return parser


def format_step(step: dict[str, Any]) -> str:
    mark = STATUS_MARKS.get(step.get("status", ""), "?")
    return f"[{mark}] {step.get('id')}: {step.get('label')}"


def iter_sse(lines) -> Any:
    """Yield decoded JSON payloads from ``data:`` lines."""
    for line in lines:
        if line.startswith("data:"):
            yield json.loads(line[len("data:") :].strip())


def run_blocking(client: httpx.Client, args: argparse.Namespace) -> int:
    resp = client.post(f"{args.agent_url}/v1/ask", json={"query": args.query})
    if resp.status_code >= 400:
        print(f"Request failed: {resp.status_code}")
        print(resp.text)
        return 1

    data = resp.json()
    print(data.get("answer", ""))
    if args.verbose:
        print("\n--- trace ---")
        for step in data.get("trace", []):
            print(format_step(step))
        print("\n--- turn_id ---")
        print(data.get("turn_id"))
    return 0


def run_streaming(client: httpx.Client, args: argparse.Namespace) -> int:
    exit_code = 0
    with client.stream("POST", f"{args.agent_url}/v1/ask/stream", json={"query": args.query}) as resp:
        if resp.status_code >= 400:
            resp.read()
            print(f"Request failed: {resp.status_code}")
            print(resp.text)
            return 1
        for event in iter_sse(resp.iter_lines()):
            kind = event.get("type")
            if kind == "delta":
                sys.stdout.write(event["delta"])
                sys.stdout.flush()
            elif kind == "trace" and args.verbose:
                print(f"\n{format_step(event['step'])}", file=sys.stderr)
            elif kind == "final":
                print()
                if args.verbose:
                    # The final text is authoritative; deltas may differ from it.
                    print("\n--- final ---")
                    print(event["message"]["answer"])
            elif kind == "error":
                print(f"\nError: {event.get('message')}")
                exit_code = 1
    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Avoid inheriting system proxy settings that can break localhost calls.
    try:
        with httpx.Client(timeout=args.timeout, trust_env=False) as client:
            if args.clear:
                client.post(f"{args.agent_url}/v1/clear")
            if args.stream:
                return run_streaming(client, args)
            return run_blocking(client, args)
    except httpx.ReadTimeout:
        print("Request timed out. The server may still be processing the request.")
        print("Try again with a longer timeout, e.g. --timeout 300")
        return 1
    except httpx.ConnectError as exc:
        print(f"Could not reach {args.agent_url}: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
