# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import htmlpdf  # noqa: F401
except ImportError:
    raise ImportError("htmlpdf is not installed. Run: pip install -e '.[dev]'") from None

import pytest


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real Chromium launches and CDP connections in unit tests.

    Tests that need a session should patch ``htmlpdf.session.async_playwright``
    (and ``htmlpdf.session.launch_chrome`` when no host/port is given)
    explicitly; that patch takes priority over this fixture. Tests that
    forget get a clear error instead of silently starting Chromium.

    Opt out with::

        @pytest.mark.allow_real_browser
    """
    if "allow_real_browser" in request.keywords:
        return

    def _no_real_playwright():
        raise RuntimeError("Test tried to start Playwright. Patch 'htmlpdf.session.async_playwright' in your test.")

    async def _no_real_launch(*args, **kwargs):
        raise RuntimeError("Test tried to launch Chromium. Patch 'htmlpdf.session.launch_chrome' in your test.")

    monkeypatch.setattr("htmlpdf.session.async_playwright", _no_real_playwright)
    monkeypatch.setattr("htmlpdf.launcher.async_playwright", _no_real_playwright)
    monkeypatch.setattr("htmlpdf.session.launch_chrome", _no_real_launch)
