"""Command-line interface for scrape-chat."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from dataclasses import replace

from scrape_chat.cache import JsonFileCache
from scrape_chat.config import Settings
from scrape_chat.errors import NoMoreResults, ScrapeChatError
from scrape_chat.logging_context import configure_logging
from scrape_chat.models import ChatRequest, InitialRequest, NextPageRequest, PageRangeRequest
from scrape_chat.providers import list_providers
from scrape_chat.services import build_chat_service, build_orchestrator
from scrape_chat.session import SessionStore


def _page_range(text: str) -> tuple[int, int]:
    """Parse ``START-END`` or a single page number."""
    start, sep, end = text.partition("-")
    try:
        first = int(start)
        last = int(end) if sep else first
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START-END, got {text!r}") from None
    return first, last


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrape-chat",
        description="Scrape a paginated breeder directory and chat about the results.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--cache",
        dest="cache",
        action="store_true",
        default=None,
        help="Enable the durable JSON cache (default: from .env SCRAPER_CACHE)",
    )
    parser.add_argument(
        "--no-cache",
        dest="cache",
        action="store_false",
        help="Disable the durable JSON cache",
    )
    parser.add_argument(
        "--page-delay",
        type=float,
        default=None,
        help="Seconds between page fetches in a multi-page request (default: 0.5)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    scrape = commands.add_parser("scrape", help="Scrape a URL and print the records as JSON")
    scrape.add_argument("url", help="Directory URL (page 1)")
    pages = scrape.add_mutually_exclusive_group()
    pages.add_argument(
        "--next",
        type=int,
        default=0,
        metavar="N",
        help="After page 1, follow up to N further pages",
    )
    pages.add_argument(
        "--pages",
        type=_page_range,
        default=None,
        metavar="START-END",
        help="Scrape an explicit page range (at most 6 pages)",
    )
    scrape.add_argument(
        "--clear-cache",
        action="store_true",
        help="Empty the durable cache directory before scraping",
    )
    scrape.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path (default: stdout)",
    )

    chat = commands.add_parser("chat", help="Interactive chat session")
    chat.add_argument(
        "-p", "--provider",
        choices=list_providers(),
        default=None,
        help="AI provider to use (default: from .env DEFAULT_PROVIDER)",
    )

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: 8080)")

    return parser


def _run_scrape(args: argparse.Namespace, settings: Settings) -> int:
    if args.clear_cache:
        removed = JsonFileCache(settings.cache_dir).clear()
        print(f"Cleared {removed} cached URL(s)", file=sys.stderr)

    store = SessionStore(idle_timeout=0)
    orchestrator = build_orchestrator(settings, store)

    if args.pages:
        start, end = args.pages
        result = orchestrator.scrape(PageRangeRequest(start=start, end=end, url=args.url))
    else:
        result = orchestrator.scrape(InitialRequest(url=args.url))
        for _ in range(max(args.next, 0)):
            try:
                result = orchestrator.scrape(NextPageRequest(session_id=result.session_id))
            except NoMoreResults:
                print(f"No more pages after page {result.page}", file=sys.stderr)
                break

    output = json.dumps(result.to_wire(), indent=2, ensure_ascii=False)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(output)

    if not result.complete:
        print(f"[!] Incomplete: {result.message}", file=sys.stderr)
    return 0


def _run_chat(args: argparse.Namespace, settings: Settings) -> int:
    store = SessionStore(idle_timeout=0)
    orchestrator = build_orchestrator(settings, store)
    try:
        service = build_chat_service(settings, store, orchestrator, args.provider)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    session_id = uuid.uuid4().hex
    print(
        "Paste a URL to scrape, ask for 'next page' or 'pages 1-3', "
        "or 'filter location <place>'. Ctrl-D to quit.",
        file=sys.stderr,
    )
    while True:
        try:
            line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print(file=sys.stderr)
            return 0

        line = line.strip()
        if not line:
            continue
        if line.lower() in ("quit", "exit"):
            return 0

        try:
            response = service.handle(ChatRequest(message=line, session_id=session_id))
        except ScrapeChatError as exc:
            print(f"[!] {exc.message}", file=sys.stderr)
            continue

        print(response.content)
        if response.results:
            print(f"  ({len(response.results)} records)", file=sys.stderr)


def _run_serve(settings: Settings) -> int:
    from scrape_chat.server import create_app

    app = create_app(settings)
    app.run(host=settings.host, port=settings.port, threaded=True)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    settings = Settings.from_env()

    # Apply CLI overrides
    overrides: dict = {}
    if args.cache is not None:
        overrides["cache_enabled"] = args.cache
    if args.page_delay is not None:
        overrides["page_delay"] = args.page_delay
    if args.command == "serve":
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
    if overrides:
        settings = replace(settings, **overrides)

    try:
        if args.command == "scrape":
            return _run_scrape(args, settings)
        if args.command == "chat":
            return _run_chat(args, settings)
        return _run_serve(settings)
    except ScrapeChatError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
