# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Navigation orchestrator: one request from session to PDF.

State machine::

    IDLE -> CONNECTING -> PRE_NAVIGATE -> NAVIGATING -> POST_NAVIGATE
         -> PRINTING -> DONE
    (any state) -> FAILED

Every transition consults the cancellation envelope first, and every CDP
call is a guarded suspend point. Nothing is retried or suppressed here:
failures propagate after the session manager has torn everything down.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import Any

from . import cdp
from .cancellation import CancellationEnvelope
from .cdp import ProtocolClient
from .errors import EvaluationError, GenerationTimeoutError, TransportError, TriggerTimeoutError
from .options import CreateOptions
from .result import CreateResult
from .session import open_session
from .stage_timer import StageTimer

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^(https?|file|data):", re.IGNORECASE | re.ASCII)


class GenerationState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    PRE_NAVIGATE = "pre_navigate"
    NAVIGATING = "navigating"
    POST_NAVIGATE = "post_navigate"
    PRINTING = "printing"
    DONE = "done"
    FAILED = "failed"


def resolve_url(content: str) -> str:
    """URLs (http, https, file, data) pass through; anything else is HTML."""
    if _URL_RE.match(content):
        return content
    return f"data:text/html,{content}"


def _log_observer_failure(task: asyncio.Future) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.warning("Async page observer raised", exc_info=task.exception())


def _observer(callback: Callable[[dict], Any], kind: str) -> Callable[[dict], None]:
    """Wrap a caller's observer so it can never affect the request outcome."""

    def _dispatch(params: dict) -> None:
        try:
            result = callback(params)
            if inspect.isawaitable(result):
                asyncio.ensure_future(result).add_done_callback(_log_observer_failure)
        except Exception:
            logger.warning("%s observer raised", kind, exc_info=True)

    return _dispatch


class Navigator:
    """Runs one generation request through the state machine."""

    def __init__(
        self,
        options: CreateOptions,
        envelope: CancellationEnvelope,
        timer: StageTimer | None = None,
    ) -> None:
        self.options = options
        self.envelope = envelope
        self.timer = timer or StageTimer()
        self.state = GenerationState.IDLE

    def _transition(self, state: GenerationState) -> None:
        self.envelope.throw_if_canceled(self.state.value)
        logger.debug("Generation state %s -> %s", self.state.value, state.value)
        self.state = state
        self.timer.stage(state.value)

    async def _send(self, client: ProtocolClient, method: str, params: dict | None = None) -> dict:
        return await cdp.send(client, self.envelope, method, params, stage=self.state.value)

    async def generate(self, content: str) -> CreateResult:
        """Acquire a session, run every step, and always release the session.

        Raises:
            GenerationTimeoutError: the deadline elapsed (report attached).
            TransportError: connection, launch or CDP failure.
            EvaluationError: the completion trigger failed on the page.
        """
        try:
            self._transition(GenerationState.CONNECTING)
            async with open_session(self.options, self.envelope) as session:
                return await self.run(content, session.client)
        except GenerationTimeoutError as exc:
            self._fail()
            if not exc.report:
                exc.report = self.timer.timeout_report(exc.stage)
            logger.warning("Generation timed out: %s", exc.report)
            raise
        except BaseException as exc:
            self._fail()
            logger.info("Generation failed (%s): %s", exc.__class__.__name__, exc)
            raise
        finally:
            self.timer.finalize()

    async def run(self, content: str, client: ProtocolClient) -> CreateResult:
        """Steps after CONNECTING, against an already-open CDP client."""
        self._transition(GenerationState.PRE_NAVIGATE)
        await self._before_navigate(client)

        self._transition(GenerationState.NAVIGATING)
        await self._navigate(client, resolve_url(content))

        self._transition(GenerationState.POST_NAVIGATE)
        await self._after_navigate(client)

        self._transition(GenerationState.PRINTING)
        data = await self._print(client)

        self._transition(GenerationState.DONE)
        logger.info("PDF generated in %.1fms (%s)", self.timer.total_ms(), self.timer.elapsed_per_stage())
        return CreateResult(data)

    def _fail(self) -> None:
        self.state = GenerationState.FAILED

    async def _before_navigate(self, client: ProtocolClient) -> None:
        if self.options.clear_cache:
            await self._send(client, "Network.clearBrowserCache")
        # Domains enabled here serve the load event, observers and triggers.
        await asyncio.gather(
            self._send(client, "Page.enable"),
            self._send(client, "Runtime.enable"),
        )
        if self.options.console_handler:
            self.envelope.throw_if_canceled(self.state.value)
            client.on("Runtime.consoleAPICalled", _observer(self.options.console_handler, "Console"))
        if self.options.exception_handler:
            self.envelope.throw_if_canceled(self.state.value)
            client.on("Runtime.exceptionThrown", _observer(self.options.exception_handler, "Exception"))
        # Cookies must land before Page.navigate or the first load misses them.
        if self.options.cookies:
            await self._send(client, "Network.setCookies", {"cookies": [dict(c) for c in self.options.cookies]})

    async def _navigate(self, client: ProtocolClient, url: str) -> None:
        loaded: asyncio.Future = asyncio.get_running_loop().create_future()

        def _on_load(params: dict) -> None:
            if not loaded.done():
                loaded.set_result(params)

        client.once("Page.loadEventFired", _on_load)
        try:
            # Either may settle first; both must.
            navigation, _ = await asyncio.gather(
                self._send(client, "Page.navigate", {"url": url}),
                self.envelope.guard(loaded, stage=self.state.value),
            )
        finally:
            if not loaded.done():
                loaded.cancel()
                client.remove_listener("Page.loadEventFired", _on_load)

        error_text = navigation.get("errorText")
        if error_text:
            logger.warning("Navigation reported %s for %.100s", error_text, url)

    async def _after_navigate(self, client: ProtocolClient) -> None:
        trigger = self.options.completion_trigger
        if trigger is None:
            return
        stage = self.state.value
        outcome = await self.envelope.guard(trigger.wait(client, self.envelope), stage=stage)
        self.envelope.throw_if_canceled(stage)
        if outcome.timed_out:
            raise TriggerTimeoutError(outcome.error)
        if not outcome.ready:
            raise EvaluationError(outcome.error)
        logger.debug("Completion trigger %r ready", trigger)

    async def _print(self, client: ProtocolClient) -> str:
        result = await self._send(client, "Page.printToPDF", self.options.print_params())
        self.envelope.throw_if_canceled(self.state.value)
        data = result.get("data")
        if not data:
            raise TransportError("Page.printToPDF returned no data")
        return data
