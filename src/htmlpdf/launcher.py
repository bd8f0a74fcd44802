# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Local Chromium launch for requests that bring no remote target.

Chromium is started with ``--remote-debugging-port`` (0 = any free port) and
the bound port is read back from its ``DevTools listening on`` stderr line.
Each launch gets a throwaway profile directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass, field

from playwright.async_api import async_playwright

from .errors import TransportError

logger = logging.getLogger(__name__)

_STARTUP_TIMEOUT = 30.0  # seconds
_DEVTOOLS_RE = re.compile(r"DevTools listening on (ws://[^\s]+:(\d+)/\S*)")
_MAX_STDERR_TAIL = 20


@dataclass
class LaunchedChrome:
    """Handle to a Chromium process owned by one request."""

    process: asyncio.subprocess.Process
    port: int
    websocket_url: str = ""
    user_data_dir: str | None = None
    _drain_task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    async def kill(self) -> None:
        """Terminate the process and remove its profile. Safe to call twice."""
        if self.process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()
            await self.process.wait()
            logger.info("Chromium killed (pid=%d)", self.pid)
        if self._drain_task is not None:
            self._drain_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task
            self._drain_task = None
        if self.user_data_dir:
            shutil.rmtree(self.user_data_dir, ignore_errors=True)
            self.user_data_dir = None


async def _bundled_chromium_path() -> str:
    """Path of the Chromium build that ships with Playwright."""
    async with async_playwright() as p:
        return p.chromium.executable_path


async def resolve_executable(executable_path: str | None = None) -> str:
    path = executable_path or os.environ.get("HTMLPDF_CHROME_PATH", "").strip()
    if path:
        return path
    path = await _bundled_chromium_path()
    if not os.path.exists(path):
        raise TransportError(f"Chromium executable not found at {path}. Please run: playwright install chromium")
    return path


async def _read_devtools_endpoint(stream: asyncio.StreamReader) -> tuple[str, int]:
    tail: list[str] = []
    while True:
        raw = await stream.readline()
        if not raw:
            raise TransportError("Chromium exited before opening a DevTools port: " + " | ".join(tail))
        line = raw.decode(errors="replace").strip()
        match = _DEVTOOLS_RE.search(line)
        if match:
            return match.group(1), int(match.group(2))
        tail.append(line)
        tail = tail[-_MAX_STDERR_TAIL:]


async def _drain(stream: asyncio.StreamReader) -> None:
    """Keep reading stderr so Chromium never blocks on a full pipe."""
    while True:
        raw = await stream.readline()
        if not raw:
            return
        logger.debug("chromium: %s", raw.decode(errors="replace").rstrip())


async def launch_chrome(
    port: int | None = None,
    executable_path: str | None = None,
    flags: Sequence[str] = (),
    *,
    startup_timeout: float = _STARTUP_TIMEOUT,
) -> LaunchedChrome:
    """Start Chromium and wait until its DevTools endpoint is listening.

    Raises:
        TransportError: executable missing, process failed to start, or no
            DevTools port appeared within *startup_timeout* seconds.
    """
    executable = await resolve_executable(executable_path)
    user_data_dir = tempfile.mkdtemp(prefix="htmlpdf-")
    args = [
        *flags,
        f"--remote-debugging-port={port or 0}",
        f"--user-data-dir={user_data_dir}",
        "--no-first-run",
        "--no-default-browser-check",
        "about:blank",
    ]
    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        shutil.rmtree(user_data_dir, ignore_errors=True)
        raise TransportError(f"Failed to launch Chromium ({executable}): {exc}") from exc

    chrome = LaunchedChrome(process=process, port=0, user_data_dir=user_data_dir)
    try:
        websocket_url, bound_port = await asyncio.wait_for(
            _read_devtools_endpoint(process.stderr), timeout=startup_timeout
        )
    except TimeoutError as exc:
        await chrome.kill()
        raise TransportError(f"Chromium did not open a DevTools port within {startup_timeout}s") from exc
    except BaseException:
        await chrome.kill()
        raise

    chrome.port = bound_port
    chrome.websocket_url = websocket_url
    chrome._drain_task = asyncio.ensure_future(_drain(process.stderr))
    logger.info("Chromium launched (pid=%d, port=%d)", process.pid, bound_port)
    return chrome
