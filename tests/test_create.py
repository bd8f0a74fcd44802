# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""End-to-end create() against a fake CDP transport."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from unittest.mock import AsyncMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

import htmlpdf
from htmlpdf import (
    CreateOptions,
    EvaluationError,
    GenerationTimeoutError,
    PrintOptions,
    TransportError,
    VariableTrigger,
)
from tests._fake_cdp import PDF_BYTES, FakeCDPClient, evaluate_exception, make_launched_chrome, make_playwright


@contextmanager
def _fake_browser(client: FakeCDPClient):
    factory, pw, browser, page = make_playwright(client)
    chrome = make_launched_chrome()
    launch = AsyncMock(return_value=chrome)
    with patch("htmlpdf.session.async_playwright", factory), patch("htmlpdf.session.launch_chrome", launch):
        yield pw, page, chrome, launch


class TestCreate:
    async def test_html_produces_pdf(self):
        client = FakeCDPClient()
        with _fake_browser(client) as (pw, page, chrome, launch):
            result = await htmlpdf.create("<h1>hi</h1>")

        assert result.to_bytes() == PDF_BYTES
        assert client.params_for("Page.navigate") == {"url": "data:text/html,<h1>hi</h1>"}
        launch.assert_awaited_once()
        chrome.kill.assert_awaited_once()
        page.close.assert_awaited_once()
        assert client.detach_count == 1

    async def test_url_is_navigated_verbatim(self):
        client = FakeCDPClient()
        with _fake_browser(client):
            await htmlpdf.create("https://example.com/report", CreateOptions(port=9222))
        assert client.params_for("Page.navigate") == {"url": "https://example.com/report"}

    async def test_remote_target_skips_launch(self):
        client = FakeCDPClient()
        with _fake_browser(client) as (pw, page, chrome, launch):
            await htmlpdf.create("<p>x</p>", CreateOptions(host="127.0.0.1", port=9222))
        launch.assert_not_awaited()
        chrome.kill.assert_not_awaited()

    async def test_print_options_reach_chromium(self):
        client = FakeCDPClient()
        options = CreateOptions(port=9222, print_options=PrintOptions(landscape=True, paper_width=8.27))
        with _fake_browser(client):
            await htmlpdf.create("<p>x</p>", options)
        assert client.params_for("Page.printToPDF") == {"landscape": True, "paperWidth": 8.27}

    @pytest.mark.parametrize("timeout_ms", [None, 0])
    async def test_no_deadline_never_hangs(self, timeout_ms):
        client = FakeCDPClient()
        with _fake_browser(client):
            result = await asyncio.wait_for(
                htmlpdf.create("<p>x</p>", CreateOptions(port=9222, timeout_ms=timeout_ms)), timeout=2.0
            )
        assert result.to_bytes() == PDF_BYTES


class TestCreateFailures:
    async def test_print_failure_still_releases_and_kills_once(self):
        client = FakeCDPClient(errors={"Page.printToPDF": PlaywrightError("Printing failed")})
        with _fake_browser(client) as (pw, page, chrome, launch):
            with pytest.raises(TransportError, match="Printing failed"):
                await htmlpdf.create("<p>x</p>")

        assert client.detach_count == 1
        page.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        chrome.kill.assert_awaited_once()

    async def test_deadline_raises_timeout_with_report(self):
        client = FakeCDPClient(fire_load=False)
        with _fake_browser(client) as (pw, page, chrome, launch):
            with pytest.raises(GenerationTimeoutError) as excinfo:
                await htmlpdf.create("<p>x</p>", CreateOptions(timeout_ms=50))

        report = excinfo.value.report
        assert report["error"] == "timeout"
        assert report["timed_out_at"] == "navigating"
        assert "load event" in report["hint"]
        assert "Page.printToPDF" not in client.methods
        chrome.kill.assert_awaited_once()
        assert client.detach_count == 1

    async def test_deadline_while_opening_tab_still_closes_it(self):
        client = FakeCDPClient()
        with _fake_browser(client) as (pw, page, chrome, launch):
            context = pw.chromium.connect_over_cdp.return_value.contexts[0]

            async def _slow_new_page():
                await asyncio.sleep(0.2)
                return page

            context.new_page = AsyncMock(side_effect=_slow_new_page)
            with pytest.raises(GenerationTimeoutError) as excinfo:
                await htmlpdf.create("<h1>hi</h1>", CreateOptions(port=9222, timeout_ms=50))

        assert excinfo.value.report["timed_out_at"] == "connecting"
        page.close.assert_awaited_once()
        assert "Page.navigate" not in client.methods

    async def test_timeout_is_catchable_as_builtin(self):
        client = FakeCDPClient(delays={"Page.printToPDF": 1.0})
        with _fake_browser(client):
            with pytest.raises(TimeoutError):
                await htmlpdf.create("<p>x</p>", CreateOptions(port=9222, timeout_ms=50))

    async def test_trigger_exception_means_no_print(self):
        client = FakeCDPClient(evaluate=lambda params: evaluate_exception("ReferenceError: nope is not defined"))
        options = CreateOptions(port=9222, completion_trigger=VariableTrigger(expression="nope.ready"))
        with _fake_browser(client):
            with pytest.raises(EvaluationError, match="ReferenceError"):
                await htmlpdf.create("<p>x</p>", options)
        assert "Page.printToPDF" not in client.methods
        assert client.detach_count == 1
