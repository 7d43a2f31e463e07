"""Command line interface for the Dust provider."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import DustSettings
from .core.adapters import DustAdapter, StreamMode
from .core.adapters.stream import TextEvent, replay_events
from .core.adapters.toolbridge import parse_response
from .core.catalog import search_agents
from .core.errors import AdapterError, ConfigurationError
from .core.message import Message, MessageRole
from .runtime import AgentRuntime

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Talk to Dust agents from the command line")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    agents_parser = subparsers.add_parser("agents", help="list the agents of the workspace")
    agents_parser.add_argument("--search", default="", help="Only show agents matching this term")

    ask_parser = subparsers.add_parser("ask", help="send a single prompt and stream the answer")
    ask_parser.add_argument("prompt", help="User message to send")
    ask_parser.add_argument("--system", default=DEFAULT_SYSTEM_PROMPT, help="System prompt")
    ask_parser.add_argument(
        "--simple",
        action="store_true",
        help="Print content fragments as they arrive instead of parsing tool calls",
    )

    parse_parser = subparsers.add_parser("parse", help="extract tool calls from model output")
    parse_parser.add_argument("path", help="File to parse, or '-' for stdin")

    return parser


def _handle_agents(args: argparse.Namespace, settings: DustSettings) -> int:
    adapter = DustAdapter(settings)
    models = asyncio.run(adapter.fetch_available_models())
    for agent_id in search_agents(models, args.search):
        print(f"{agent_id}\t{models[agent_id].agent_name or ''}")
    return 0


def _handle_ask(args: argparse.Namespace, settings: DustSettings) -> int:
    mode = StreamMode.SIMPLE if args.simple else StreamMode.TOOL_AWARE
    adapter = DustAdapter(settings, mode=mode)
    messages = [Message(role=MessageRole.USER, content=args.prompt)]
    runtime = AgentRuntime(adapter, args.system, messages)

    async def _run() -> None:
        if not args.simple:
            sys.stdout.write(await replay_events(runtime))
            return
        try:
            async for event in runtime:
                if isinstance(event, TextEvent):
                    sys.stdout.write(event.text)
                    sys.stdout.flush()
        finally:
            await runtime.aclose()

    asyncio.run(_run())
    sys.stdout.write("\n")
    if runtime.state.usage:
        metadata = runtime.state.metadata
        print(f"usage: input={metadata['input_tokens']} output={metadata['output_tokens']}", file=sys.stderr)
    return 0


def _handle_parse(args: argparse.Namespace) -> int:
    if args.path == "-":
        text = sys.stdin.read()
    else:
        text = Path(args.path).read_text(encoding="utf-8")
    parsed = parse_response(text)
    payload = {
        "normal_text": parsed.normal_text,
        "tool_calls": [
            {"id": call.id, "name": call.name, "input": dict(call.input)} for call in parsed.tool_calls
        ],
    }
    print(json.dumps(payload, indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "parse":
        return _handle_parse(args)

    settings = DustSettings.from_env()
    try:
        if args.command == "agents":
            return _handle_agents(args, settings)
        if args.command == "ask":
            return _handle_ask(args, settings)
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except AdapterError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    parser.error("no command provided")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
