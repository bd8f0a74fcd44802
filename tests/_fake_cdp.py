# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""In-memory stand-in for a Playwright CDPSession, plus Playwright mocks."""

from __future__ import annotations

import asyncio
import base64
from collections import defaultdict
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

PDF_BYTES = b"%PDF-1.4\n%fake\n"
PDF_B64 = base64.b64encode(PDF_BYTES).decode()


def evaluate_result(value) -> dict:
    return {"result": {"type": type(value).__name__, "value": value}}


def evaluate_exception(description: str) -> dict:
    return {
        "result": {"type": "object", "subtype": "error", "description": description},
        "exceptionDetails": {
            "text": "Uncaught",
            "exception": {"type": "object", "subtype": "error", "description": description},
        },
    }


class FakeCDPClient:
    """Records every command; fires Page.loadEventFired after Page.navigate.

    Args:
        responses: method -> response dict (defaults cover navigate/print).
        errors: method -> exception raised by send().
        delays: method -> seconds to sleep inside send().
        evaluate: callable(params) -> response for Runtime.evaluate.
        fire_load: emit Page.loadEventFired when navigate is issued.
        load_delay: seconds between navigate being issued and the load event.
    """

    def __init__(
        self,
        *,
        responses: dict | None = None,
        errors: dict | None = None,
        delays: dict | None = None,
        evaluate: Callable[[dict], dict] | None = None,
        fire_load: bool = True,
        load_delay: float = 0.0,
    ) -> None:
        self.responses = {
            "Page.navigate": {"frameId": "F1", "loaderId": "L1"},
            "Page.printToPDF": {"data": PDF_B64},
            **(responses or {}),
        }
        self.errors = errors or {}
        self.delays = delays or {}
        self.evaluate = evaluate
        self.fire_load = fire_load
        self.load_delay = load_delay
        self.calls: list[tuple[str, dict | None]] = []
        self.call_times: dict[str, float] = {}
        self.events: list[str] = []
        self.detach_count = 0
        self._listeners: dict[str, list[tuple[Callable, bool]]] = defaultdict(list)

    @property
    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    def params_for(self, method: str) -> dict | None:
        for m, params in self.calls:
            if m == method:
                return params
        raise AssertionError(f"{method} was never sent")

    async def send(self, method: str, params: dict | None = None) -> dict:
        loop = asyncio.get_running_loop()
        self.calls.append((method, params))
        self.call_times.setdefault(method, loop.time())
        if method == "Page.navigate" and self.fire_load:
            loop.call_later(self.load_delay, self._fire_load)
        delay = self.delays.get(method)
        if delay:
            await asyncio.sleep(delay)
        if method in self.errors:
            raise self.errors[method]
        if method == "Runtime.evaluate" and self.evaluate is not None:
            return self.evaluate(params)
        if method == "Page.navigate":
            self.events.append("navigate-returned")
        return self.responses.get(method, {})

    def _fire_load(self) -> None:
        self.events.append("load-fired")
        self.emit("Page.loadEventFired", {"timestamp": 1.0})

    def on(self, event: str, f: Callable) -> None:
        self._listeners[event].append((f, False))

    def once(self, event: str, f: Callable) -> None:
        self._listeners[event].append((f, True))

    def remove_listener(self, event: str, f: Callable) -> None:
        self._listeners[event] = [(g, once) for g, once in self._listeners[event] if g is not f]

    def listener_count(self, event: str) -> int:
        return len(self._listeners[event])

    def emit(self, event: str, params: dict) -> None:
        for f, once in list(self._listeners[event]):
            if once:
                self.remove_listener(event, f)
            f(params)

    async def detach(self) -> None:
        self.detach_count += 1


def make_playwright(client: FakeCDPClient, *, contexts: bool = True):
    """Mock ``async_playwright`` factory wired to return *client* as the CDP session.

    Returns (factory, playwright, browser, page).
    """
    page = MagicMock()
    page.close = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.new_cdp_session = AsyncMock(return_value=client)

    browser = MagicMock()
    browser.contexts = [context] if contexts else []
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    pw = MagicMock()
    pw.chromium.connect_over_cdp = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()

    manager = MagicMock()
    manager.start = AsyncMock(return_value=pw)
    factory = MagicMock(return_value=manager)
    return factory, pw, browser, page


def make_launched_chrome(port: int = 9333) -> MagicMock:
    chrome = MagicMock()
    chrome.port = port
    chrome.pid = 4242
    chrome.kill = AsyncMock()
    return chrome
