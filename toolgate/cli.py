"""
Toolgate CLI - Command-line interface for chatting with tool-capable models.

Commands:
    toolgate chat --provider gemini          Chat with a model that can call tools
    toolgate call randomInt --args '{"max": 10}'   Call a tool directly
    toolgate serve                           Run the gateway (same as toolgate-server)
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from .exceptions import ToolgateError


def _build_config(args: argparse.Namespace):
    from .loop import ChatConfig

    config = ChatConfig.from_env(provider=getattr(args, "provider", None))
    if getattr(args, "model", None):
        config.model = args.model
    if getattr(args, "max_hops", None) is not None:
        config.max_hops = args.max_hops
    if args.gateway:
        config.tool_endpoint = args.gateway
    return config


async def _chat(args: argparse.Namespace) -> None:
    from .loop import ConversationLoop

    config = _build_config(args)
    adapter = config.build_adapter()
    tools = config.build_tools()
    loop = ConversationLoop(adapter, tools, max_hops=config.max_hops)
    history: list = []

    source = config.tool_endpoint or "in-process tools"
    print(f"Toolgate × {adapter.label} ({adapter.model}) - tools: {source}")
    print("Type a message, /reset to clear history, /quit to exit.\n")

    try:
        while True:
            try:
                prompt = input("You: ").strip()
            except EOFError:
                print()
                break
            if not prompt:
                continue
            if prompt in ("/quit", "/exit"):
                break
            if prompt == "/reset":
                history = []
                print("(history cleared)\n")
                continue

            history = await loop.reply(prompt, history)
            print(f"AI: {history[-1].content}\n")
    finally:
        await tools.close()


def _build_tools(args: argparse.Namespace):
    from .client import GatewayToolClient, LocalToolClient

    endpoint = args.gateway or os.environ.get("TOOLGATE_TOOL_ENDPOINT")
    if endpoint:
        return GatewayToolClient(endpoint)
    return LocalToolClient()


async def _call(args: argparse.Namespace) -> None:
    tools = _build_tools(args)
    try:
        arguments = json.loads(args.args) if args.args else {}
        print(await tools.invoke(args.name, arguments))
    finally:
        await tools.close()


def cmd_chat(args: argparse.Namespace) -> None:
    """Run the interactive chat loop."""
    try:
        asyncio.run(_chat(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nBye.")


def cmd_call(args: argparse.Namespace) -> None:
    """Call a tool once and print its output."""
    try:
        asyncio.run(_call(args))
    except json.JSONDecodeError as e:
        print(f"Error: --args is not valid JSON: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ToolgateError as e:
        print(f"Tool error: {e.message}", file=sys.stderr)
        sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the gateway server."""
    from .server.cli import main as server_main

    server_main(args.server_args)


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="toolgate",
        description="Toolgate - chat with tool-capable models through a session gateway",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    chat_parser = subparsers.add_parser("chat", help="Chat with a model that can call tools")
    chat_parser.add_argument(
        "--provider",
        choices=["openai", "gemini", "claude"],
        default=None,
        help="Vendor to chat with (default: $TOOLGATE_PROVIDER or openai)",
    )
    chat_parser.add_argument("--model", default=None, help="Override the vendor model")
    chat_parser.add_argument(
        "--max-hops",
        type=int,
        default=None,
        help="Maximum tool calls per turn (default: 3)",
    )
    chat_parser.add_argument(
        "--gateway",
        default=None,
        help="Gateway URL, e.g. http://localhost:8080/invoke (default: in-process tools)",
    )
    chat_parser.set_defaults(func=cmd_chat)

    call_parser = subparsers.add_parser("call", help="Call a tool directly")
    call_parser.add_argument("name", help="Tool name, e.g. randomInt")
    call_parser.add_argument("--args", default=None, help="Tool arguments as a JSON object")
    call_parser.add_argument("--gateway", default=None, help="Gateway URL")
    call_parser.set_defaults(func=cmd_call)

    serve_parser = subparsers.add_parser("serve", help="Run the gateway server")
    serve_parser.add_argument(
        "server_args",
        nargs=argparse.REMAINDER,
        help="Arguments passed to toolgate-server",
    )
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
