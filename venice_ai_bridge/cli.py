"""Command line front-end: one-shot prompts, interactive chat, login and the HTTP server."""

import argparse
import asyncio
import logging
import sys
from time import sleep
from typing import Optional, List

from playwright.async_api import Error as PlaywrightError

from .api import run_server
from .config import BridgeConfig
from .errors import BridgeError
from .models import AVAILABLE_MODELS, DEFAULT_MODEL, Reference
from .service import AutomationService


class tColor:
    reset = '\033[0m'
    bold = '\033[1m'
    red = '\033[91m'
    green = '\033[92m'
    yellow = '\033[93m'
    blue = '\033[94m'
    lavand = '\033[38;5;140m'
    aqua = '\033[38;5;109m'
    aqua2 = '\033[38;5;158m'


def render_answer(answer: str, typing_delay: float = 0.02):
    """Display answer with typing animation."""
    print(tColor.aqua2, end='\n', flush=True)
    for char in answer:
        print(char, end='', flush=True)
        if typing_delay > 0:
            sleep(typing_delay)
    print(tColor.reset, end='\n', flush=True)


def render_references(refs: List[Reference]):
    """Display references."""
    if not refs:
        return
    print(f"\n{tColor.lavand}References:{tColor.reset}")
    for ref in refs:
        print(f"  [{ref.number}] {ref.text}")
        if ref.url and ref.url != ref.text:
            print(f"      {tColor.blue}{ref.url}{tColor.reset}")


async def cli_ask(
    service: AutomationService,
    prompt: str,
    context_id: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    show_refs: bool = False,
    typing_delay: float = 0.02,
) -> str:
    """CLI: send a single prompt. Returns the conversation id."""
    print(f"{tColor.bold}Asking:{tColor.reset} {prompt} [{tColor.aqua}{model}{tColor.reset}]\n")
    chat_id, result = await service.chat(prompt, context_id=context_id, model=model)
    render_answer(result.response, typing_delay=typing_delay)
    if show_refs:
        render_references(result.references)
    print(f"\n{tColor.lavand}Chat ID: {chat_id}{tColor.reset}")
    return chat_id


async def cli_interactive(
    service: AutomationService,
    context_id: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    show_refs: bool = False,
    typing_delay: float = 0.02,
):
    """CLI: chat in one conversation until 'exit'."""
    print(f"{tColor.bold}Venice AI Bridge{tColor.reset} - Interactive Mode")
    print("Type your prompt and press Enter. Type 'exit' to quit.")
    print("Commands: /model <name>, /new, /refs, /help\n")

    chat_id = context_id
    while True:
        try:
            print(f"{tColor.bold}❯{tColor.reset} ", end="", flush=True)
            raw = await asyncio.to_thread(sys.stdin.readline)
        except (KeyboardInterrupt, EOFError):
            break
        if not raw:
            break  # EOF
        line = raw.strip()

        if not line:
            continue
        if line.lower() in ("exit", "quit"):
            break

        if line.startswith("/"):
            command, _, arg = line.partition(" ")
            arg = arg.strip()
            if command == "/model":
                if arg in AVAILABLE_MODELS:
                    model = arg
                    print(f"  Model set to: {model} ({AVAILABLE_MODELS[model]})")
                else:
                    print(f"  Available models: {', '.join(AVAILABLE_MODELS.keys())}")
            elif command == "/new":
                chat_id = None
                print("  Next prompt starts a new conversation")
            elif command == "/refs":
                show_refs = not show_refs
                print(f"  References: {'ON' if show_refs else 'OFF'}")
            else:
                print("  /model <name>  switch model")
                print("  /new           start a new conversation")
                print("  /refs          toggle references")
            continue

        try:
            chat_id = await cli_ask(
                service, line,
                context_id=chat_id,
                model=model,
                show_refs=show_refs,
                typing_delay=typing_delay,
            )
        except (BridgeError, PlaywrightError) as e:
            print(f"{tColor.red}Error: {e}{tColor.reset}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Venice AI Bridge - Browser automation + Local API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ask a question in a new conversation
  %(prog)s "What is quantum computing?"

  # Follow up in an existing conversation, with references
  %(prog)s -c <chat-id> --refs "Give me sources"

  # Use a specific model
  %(prog)s -m llama3 "Explain relativity"

  # Interactive mode
  %(prog)s -i

  # Sign in once so the profile keeps the session
  %(prog)s --login

  # Start HTTP API server
  %(prog)s --serve --port 3000

  # Query via HTTP:
  curl -X POST localhost:3000/chat -H 'Content-Type: application/json' \\
       -d '{"prompt": "What is AI?", "withRefs": true}'

Credentials and timeouts are read from the environment or a .env file
(LOGIN_EMAIL, LOGIN_PASSWORD, HEADLESS, MAX_TIMEOUT, ...).
"""
    )
    parser.add_argument("prompt", nargs="?", help="Prompt to send")
    parser.add_argument("-c", "--context", default=None,
                        help="Conversation id to continue")
    parser.add_argument("-m", "--model", default=DEFAULT_MODEL,
                        choices=list(AVAILABLE_MODELS.keys()),
                        help="Model to use. Options: " + ", ".join(AVAILABLE_MODELS.keys()))
    parser.add_argument("--refs", action="store_true",
                        help="Show references under the answer")
    parser.add_argument("-i", "--interactive", action="store_true",
                        help="Interactive mode")
    parser.add_argument("--login", action="store_true",
                        help="Launch the browser, sign in and exit")
    parser.add_argument("--serve", action="store_true",
                        help="Start HTTP API server")
    parser.add_argument("--host", default=None,
                        help="API server host (default: HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None,
                        help="API server port (default: PORT or 3000)")
    parser.add_argument("--headless", action="store_true",
                        help="Run the browser headless")
    parser.add_argument("--no-typing", action="store_true",
                        help="Disable typing animation")
    parser.add_argument("--list-models", action="store_true",
                        help="List available models and exit")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.list_models:
        print(f"{tColor.bold}Available Models:{tColor.reset}")
        for key, name in AVAILABLE_MODELS.items():
            print(f"  {tColor.aqua}{key:20}{tColor.reset} → {name}")
        return 0

    config = BridgeConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.headless:
        config.headless = True

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    service = AutomationService(config)

    if args.serve:
        print(f"{tColor.green}Starting Venice Bridge API server...{tColor.reset}")
        print(f"  URL: http://{config.host}:{config.port}")
        print(f"  Docs: http://{config.host}:{config.port}/docs")
        print(f"\n{tColor.yellow}Press Ctrl+C to stop{tColor.reset}\n")
        await run_server(service, config)
        return 0

    if not args.login and not args.interactive and not args.prompt:
        build_parser().print_help()
        return 1

    try:
        await service.launch()
    except BridgeError as e:
        print(f"{tColor.red}Startup failed: {e}{tColor.reset}")
        return 1

    try:
        if args.login:
            print(f"{tColor.green}✓ Logged in to Venice{tColor.reset}")
            return 0

        typing_delay = 0 if args.no_typing else 0.02
        if args.interactive:
            await cli_interactive(
                service,
                context_id=args.context,
                model=args.model,
                show_refs=args.refs,
                typing_delay=typing_delay,
            )
        else:
            try:
                await cli_ask(
                    service, args.prompt,
                    context_id=args.context,
                    model=args.model,
                    show_refs=args.refs,
                    typing_delay=typing_delay,
                )
            except (BridgeError, PlaywrightError) as e:
                print(f"{tColor.red}Error: {e}{tColor.reset}")
                return 1
        return 0
    finally:
        await service.shutdown_and_close_all()


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))
