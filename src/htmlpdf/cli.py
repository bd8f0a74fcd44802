# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""htmlpdf CLI: render HTML or a URL to a PDF file.

Usage:
    python -m htmlpdf.cli INPUT -o OUTPUT [options]

INPUT is an http(s)/file/data URL, a path to an HTML file (opened as a
``file:`` URL), or ``-`` for stdin (rendered inline).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from . import create
from .completion_triggers import (
    CallbackTrigger,
    CompletionTrigger,
    ElementTrigger,
    EventTrigger,
    TimerTrigger,
    VariableTrigger,
)
from .errors import HtmlPdfError
from .logging_config import configure
from .navigator import resolve_url
from .options import CreateOptions, PrintOptions


def _read_input(source: str) -> str:
    """Resolve INPUT to content for create().

    URLs pass through and files become ``file:`` URLs, so fragments and
    relative assets resolve as in a browser. Only stdin is inlined as HTML.
    """
    if source == "-":
        return sys.stdin.read()
    if resolve_url(source) == source:
        return source
    path = Path(source)
    if not path.is_file():
        raise HtmlPdfError(f"Input is neither a URL nor a readable file: {source}")
    return path.resolve().as_uri()


def _trigger_from_args(args: argparse.Namespace) -> CompletionTrigger | None:
    timeout = args.trigger_timeout_ms
    if args.wait_variable:
        return VariableTrigger(variable=args.wait_variable, timeout_ms=timeout)
    if args.wait_selector:
        return ElementTrigger(selector=args.wait_selector, timeout_ms=timeout)
    if args.wait_event:
        return EventTrigger(event=args.wait_event, timeout_ms=timeout)
    if args.wait_callback:
        return CallbackTrigger(callback=args.wait_callback, timeout_ms=timeout)
    if args.wait_ms is not None:
        return TimerTrigger(delay_ms=args.wait_ms)
    return None


def build_options(args: argparse.Namespace) -> CreateOptions:
    overrides = {
        "print_options": PrintOptions(
            landscape=args.landscape or None,
            print_background=args.print_background or None,
            scale=args.scale,
            page_ranges=args.page_ranges,
        ),
        "completion_trigger": _trigger_from_args(args),
    }
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.chrome_path:
        overrides["executable_path"] = args.chrome_path
    if args.timeout_ms is not None:
        overrides["timeout_ms"] = args.timeout_ms
    if args.clear_cache:
        overrides["clear_cache"] = True
    return CreateOptions.from_env(**overrides)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render HTML or a URL to PDF with Chromium",
        prog="python -m htmlpdf.cli",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s page.html -o page.pdf                        Render a local HTML file
  %(prog)s https://example.com -o ex.pdf --landscape    Render a live URL
  %(prog)s page.html -o page.pdf --wait-variable ready  Print once window.ready is truthy
  %(prog)s page.html -o page.pdf --port 9222            Reuse a running Chromium""",
    )
    parser.add_argument("input", metavar="INPUT", help="URL, HTML file path, or '-' for stdin")
    parser.add_argument("-o", "--output", required=True, metavar="PATH", help="Output PDF path")

    conn = parser.add_argument_group("chromium")
    conn.add_argument("--host", type=str, help="Attach to Chromium on this host instead of launching")
    conn.add_argument("--port", type=int, help="Attach to Chromium on this DevTools port")
    conn.add_argument("--chrome-path", type=str, metavar="PATH", help="Chromium executable to launch")
    conn.add_argument("--timeout-ms", type=float, help="Overall deadline in ms (<= 0 disables)")
    conn.add_argument("--clear-cache", action="store_true", help="Clear the browser cache before navigating")

    pdf = parser.add_argument_group("print")
    pdf.add_argument("--landscape", action="store_true")
    pdf.add_argument("--print-background", action="store_true")
    pdf.add_argument("--scale", type=float)
    pdf.add_argument("--page-ranges", type=str, metavar="RANGES", help="e.g. '1-5, 8, 11-13'")

    wait = parser.add_argument_group("completion trigger")
    triggers = wait.add_mutually_exclusive_group()
    triggers.add_argument("--wait-variable", metavar="NAME", help="Wait until window[NAME] is truthy")
    triggers.add_argument("--wait-selector", metavar="CSS", help="Wait until a matching element exists")
    triggers.add_argument("--wait-event", metavar="NAME", help="Wait for a DOM event on the document")
    triggers.add_argument("--wait-callback", metavar="NAME", help="Wait until the page calls window[NAME]()")
    triggers.add_argument("--wait-ms", type=float, metavar="MS", help="Wait a fixed delay")
    wait.add_argument(
        "--trigger-timeout-ms", type=float, default=1000, metavar="MS", help="Trigger timeout (default: 1000)"
    )

    log = parser.add_argument_group("logging")
    log.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    log.add_argument("--log-level", default="WARNING", help="Root log level (default: WARNING)")
    return parser


async def _render(content: str, options: CreateOptions, output: str) -> Path:
    result = await create(content, options)
    return result.to_file(output)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)
    configure(json_output=args.json_logs, level=args.log_level)

    try:
        content = _read_input(args.input)
        path = asyncio.run(_render(content, build_options(args), args.output))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except HtmlPdfError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(path)


if __name__ == "__main__":
    main()
