# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page session lifecycle: acquire one CDP-attached tab, always release it.

One ``PageSession`` per ``create()`` call, never shared. When the request
brings no remote target, Chromium is launched for it and killed after the
session is released, on every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager

from playwright.async_api import Browser, CDPSession, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .cancellation import CancellationEnvelope
from .errors import TransportError
from .launcher import LaunchedChrome, launch_chrome
from .options import CreateOptions

logger = logging.getLogger(__name__)

_STAGE = "connecting"


async def _best_effort(label: str, step: Awaitable) -> None:
    """Teardown step whose failure must never mask the request's outcome."""
    try:
        await step
    except Exception:
        logger.warning("Teardown step failed: %s", label, exc_info=True)


class PageSession:
    """One Chromium tab plus the CDP session attached to it."""

    def __init__(self, options: CreateOptions) -> None:
        self.options = options
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None
        self._client: CDPSession | None = None
        self._released = False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Page session not started.")
        return self._page

    @property
    def client(self) -> CDPSession:
        if self._client is None:
            raise RuntimeError("Page session not started.")
        return self._client

    @property
    def released(self) -> bool:
        return self._released

    async def start(self, envelope: CancellationEnvelope) -> None:
        """Connect to the CDP endpoint and open a fresh tab.

        Raises:
            TransportError: the endpoint is unreachable or rejected a command.
            GenerationTimeoutError: the deadline elapsed while connecting.
        """
        endpoint = self.options.endpoint_url
        envelope.throw_if_canceled(_STAGE)
        # Acquisition steps are not raced against the deadline: each handle is
        # stored as soon as it exists so release() can close it.
        try:
            self._playwright = await async_playwright().start()
            envelope.throw_if_canceled(_STAGE)
            self._browser = await self._playwright.chromium.connect_over_cdp(
                endpoint, timeout=self.options.connect_timeout_ms
            )
            envelope.throw_if_canceled(_STAGE)
            contexts = self._browser.contexts
            context = contexts[0] if contexts else await self._browser.new_context()
            self._page = await context.new_page()
            envelope.throw_if_canceled(_STAGE)
            self._client = await context.new_cdp_session(self._page)
            envelope.throw_if_canceled(_STAGE)
        except PlaywrightError as exc:
            raise TransportError(str(exc)) from exc
        logger.info("Page session opened on %s", endpoint)

    async def release(self) -> None:
        """Detach, close the tab and disconnect. Runs at most once."""
        if self._released:
            return
        self._released = True

        if self._client is not None:
            await _best_effort("detach CDP session", self._client.detach())
            self._client = None
        if self._page is not None:
            await _best_effort("close page", self._page.close())
            self._page = None
        # For connect_over_cdp browsers this disconnects; it does not kill Chromium.
        if self._browser is not None:
            await _best_effort("disconnect browser", self._browser.close())
            self._browser = None
        if self._playwright is not None:
            await _best_effort("stop playwright", self._playwright.stop())
            self._playwright = None

        logger.info("Page session released")


@asynccontextmanager
async def open_session(
    options: CreateOptions,
    envelope: CancellationEnvelope,
) -> AsyncGenerator[PageSession, None]:
    """Scoped session: launched process (if any) wraps the page session."""
    chrome: LaunchedChrome | None = None
    envelope.throw_if_canceled(_STAGE)
    if not options.has_remote_target:
        # Not raced against the deadline: a late launch result would leak a process.
        chrome = await launch_chrome(
            executable_path=options.executable_path,
            flags=options.launch_flags,
        )
        options = options.with_port(chrome.port)
    try:
        session = PageSession(options)
        try:
            await session.start(envelope)
            yield session
        finally:
            await session.release()
    finally:
        if chrome is not None:
            await _best_effort("kill chromium", chrome.kill())
