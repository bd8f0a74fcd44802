# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Completion triggers: when is a loaded page ready to print?

Each trigger is a configuration-only object exposing one coroutine,
``wait(client, envelope) -> WaitOutcome``. Triggers hold no per-request
state, so a single instance can be shared across concurrent ``create()``
calls.

Variants:
- EventTrigger: a DOM/custom event fires once
- TimerTrigger: fixed delay
- VariableTrigger: a page global (or expression) becomes truthy, polled
- CallbackTrigger: the page calls a window-level callback
- ElementTrigger: a selector matches a node, polled
- AllOf / AnyOf: composites over other triggers
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .cancellation import CancellationEnvelope
from .cdp import ProtocolClient, send

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "CompletionTrigger timed out."

DEFAULT_TIMEOUT_MS = 1000
DEFAULT_INTERVAL_MS = 100
DEFAULT_VARIABLE = "htmlPdfDone"
DEFAULT_CALLBACK = "htmlPdfCb"

_STAGE = "post_navigate"


@dataclass(frozen=True, slots=True)
class WaitOutcome:
    """Result of a trigger wait: ready, failed, or expired."""

    error: str | None = None
    timed_out: bool = False
    value: Any = None

    @property
    def ready(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: Any = None) -> WaitOutcome:
        return cls(value=value)

    @classmethod
    def failed(cls, message: str) -> WaitOutcome:
        return cls(error=message)

    @classmethod
    def expired(cls, message: str = TIMEOUT_MESSAGE) -> WaitOutcome:
        return cls(error=message, timed_out=True)

    @classmethod
    def from_evaluation(cls, result: dict) -> WaitOutcome:
        """Map a ``Runtime.evaluate`` response onto an outcome."""
        details = result.get("exceptionDetails")
        if not details:
            return cls.ok(result.get("result", {}).get("value"))
        message = _exception_message(details)
        if message == TIMEOUT_MESSAGE:
            return cls.expired(message)
        return cls.failed(message)


def _exception_message(details: dict) -> str:
    """Best human-readable message from CDP exceptionDetails."""
    exception = details.get("exception") or {}
    value = exception.get("value")
    if isinstance(value, str) and value:
        return value
    description = exception.get("description")
    if description:
        # "Error: boom\n    at <anonymous>:1:7" -> "Error: boom"
        return description.split("\n", 1)[0]
    return details.get("text") or "Page script evaluation failed"


@runtime_checkable
class CompletionTrigger(Protocol):
    """Interface for page readiness strategies."""

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome: ...


def _invoke(js_function: str, *args: Any) -> str:
    """Build ``(fn)(args...)`` with JSON-encoded arguments (no interpolation)."""
    encoded = ", ".join(json.dumps(a) for a in args)
    return f"({js_function})({encoded})"


async def _evaluate_promise(client: ProtocolClient, envelope: CancellationEnvelope, expression: str) -> WaitOutcome:
    result = await send(
        client,
        envelope,
        "Runtime.evaluate",
        {"expression": expression, "awaitPromise": True, "returnByValue": True},
        stage=_STAGE,
    )
    return WaitOutcome.from_evaluation(result)


async def _poll(
    client: ProtocolClient,
    envelope: CancellationEnvelope,
    expression: str,
    *,
    interval_ms: float,
    max_attempts: int | None,
    timeout_ms: float | None,
    label: str,
) -> WaitOutcome:
    """Evaluate *expression* until truthy, strictly one poll at a time.

    The first poll runs immediately. Gives up after *max_attempts* polls or
    once *timeout_ms* has elapsed, whichever comes first. With neither limit
    set, only the envelope's deadline ends the loop.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000 if timeout_ms is not None and timeout_ms > 0 else None
    attempt = 0
    while True:
        attempt += 1
        result = await send(
            client,
            envelope,
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True},
            stage=_STAGE,
        )
        if result.get("exceptionDetails"):
            outcome = WaitOutcome.from_evaluation(result)
            logger.info("%s poll %d raised: %s", label, attempt, outcome.error)
            return outcome
        if result.get("result", {}).get("value"):
            logger.debug("%s ready after %d poll(s)", label, attempt)
            return WaitOutcome.ok(True)
        if max_attempts is not None and attempt >= max_attempts:
            break
        if deadline is not None and loop.time() >= deadline:
            break
        delay_ms = interval_ms
        if deadline is not None:
            delay_ms = min(delay_ms, (deadline - loop.time()) * 1000)
        await envelope.sleep(delay_ms, stage=_STAGE)
        # No poll is issued past the trigger's own deadline.
        if deadline is not None and loop.time() >= deadline:
            break

    logger.info("%s gave up after %d poll(s)", label, attempt)
    return WaitOutcome.expired()


# ── Page-side scripts (static, arguments JSON-encoded by _invoke) ──

_EVENT_JS = """(eventName, selector, timeoutMs) => new Promise((resolve, reject) => {
  const targets = selector ? [document.querySelector(selector)] : [document, window];
  if (!targets[0]) {
    reject(new Error(`No element matches selector: ${selector}`));
    return;
  }
  let timer = null;
  const done = () => {
    if (timer) clearTimeout(timer);
    targets.forEach(t => t.removeEventListener(eventName, done));
    resolve(true);
  };
  targets.forEach(t => t.addEventListener(eventName, done, { once: true }));
  if (timeoutMs > 0) {
    timer = setTimeout(() => {
      targets.forEach(t => t.removeEventListener(eventName, done));
      reject(%s);
    }, timeoutMs);
  }
})""" % json.dumps(TIMEOUT_MESSAGE)

_CALLBACK_JS = """(name, timeoutMs) => new Promise((resolve, reject) => {
  let timer = null;
  window[name] = (value) => {
    if (timer) clearTimeout(timer);
    delete window[name];
    resolve(value === undefined ? null : value);
  };
  if (timeoutMs > 0) {
    timer = setTimeout(() => {
      delete window[name];
      reject(%s);
    }, timeoutMs);
  }
})""" % json.dumps(TIMEOUT_MESSAGE)

_VARIABLE_JS = "(name) => Boolean(window[name])"

_ELEMENT_JS = "(selector) => document.querySelector(selector) !== null"


# ── Variants ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class EventTrigger:
    """Wait for *event* to fire once on *selector* (or document/window)."""

    event: str
    selector: str | None = None
    timeout_ms: float | None = DEFAULT_TIMEOUT_MS

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        expression = _invoke(_EVENT_JS, self.event, self.selector, self.timeout_ms or 0)
        outcome = await _evaluate_promise(client, envelope, expression)
        logger.debug("EventTrigger(%s) ready=%s", self.event, outcome.ready)
        return outcome


@dataclass(frozen=True, slots=True)
class TimerTrigger:
    """Wait a fixed delay, then resolve unconditionally."""

    delay_ms: float = DEFAULT_TIMEOUT_MS

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        await envelope.sleep(self.delay_ms, stage=_STAGE)
        return WaitOutcome.ok()


@dataclass(frozen=True, slots=True)
class VariableTrigger:
    """Poll until ``window[variable]`` (or *expression*) is truthy."""

    variable: str = DEFAULT_VARIABLE
    expression: str | None = None
    interval_ms: float = DEFAULT_INTERVAL_MS
    max_attempts: int | None = None
    timeout_ms: float | None = DEFAULT_TIMEOUT_MS

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        if self.expression is not None:
            expression = f"Boolean({self.expression})"
            label = "VariableTrigger(expression)"
        else:
            expression = _invoke(_VARIABLE_JS, self.variable)
            label = f"VariableTrigger({self.variable})"
        return await _poll(
            client,
            envelope,
            expression,
            interval_ms=self.interval_ms,
            max_attempts=self.max_attempts,
            timeout_ms=self.timeout_ms,
            label=label,
        )


@dataclass(frozen=True, slots=True)
class CallbackTrigger:
    """Expose ``window[callback]`` and wait for the page to call it."""

    callback: str = DEFAULT_CALLBACK
    timeout_ms: float | None = DEFAULT_TIMEOUT_MS

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        expression = _invoke(_CALLBACK_JS, self.callback, self.timeout_ms or 0)
        return await _evaluate_promise(client, envelope, expression)


@dataclass(frozen=True, slots=True)
class ElementTrigger:
    """Poll until an element matching *selector* exists."""

    selector: str
    interval_ms: float = DEFAULT_INTERVAL_MS
    max_attempts: int | None = None
    timeout_ms: float | None = DEFAULT_TIMEOUT_MS

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        return await _poll(
            client,
            envelope,
            _invoke(_ELEMENT_JS, self.selector),
            interval_ms=self.interval_ms,
            max_attempts=self.max_attempts,
            timeout_ms=self.timeout_ms,
            label=f"ElementTrigger({self.selector})",
        )


# ── Composites ────────────────────────────────────────────────────


async def _cancel_all(tasks: list[asyncio.Task]) -> None:
    pending = [t for t in tasks if not t.done()]
    for t in pending:
        t.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


class AllOf:
    """Ready once every child trigger is ready. Children run concurrently."""

    __slots__ = ("triggers",)

    def __init__(self, *triggers: CompletionTrigger) -> None:
        if not triggers:
            raise ValueError("AllOf requires at least one trigger")
        self.triggers = tuple(triggers)

    def __repr__(self) -> str:
        return f"AllOf{self.triggers!r}"

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        tasks = [asyncio.ensure_future(t.wait(client, envelope)) for t in self.triggers]
        try:
            for fut in asyncio.as_completed(tasks):
                outcome = await fut
                if not outcome.ready:
                    return outcome
        finally:
            await _cancel_all(tasks)
        return WaitOutcome.ok([t.result().value for t in tasks])


class AnyOf:
    """Ready as soon as one child trigger is ready; the rest are cancelled."""

    __slots__ = ("triggers",)

    def __init__(self, *triggers: CompletionTrigger) -> None:
        if not triggers:
            raise ValueError("AnyOf requires at least one trigger")
        self.triggers = tuple(triggers)

    def __repr__(self) -> str:
        return f"AnyOf{self.triggers!r}"

    async def wait(self, client: ProtocolClient, envelope: CancellationEnvelope) -> WaitOutcome:
        tasks = [asyncio.ensure_future(t.wait(client, envelope)) for t in self.triggers]
        last = WaitOutcome.expired()
        try:
            for fut in asyncio.as_completed(tasks):
                outcome = await fut
                if outcome.ready:
                    return outcome
                last = outcome
        finally:
            await _cancel_all(tasks)
        return last
