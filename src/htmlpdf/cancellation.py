# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Cooperative cancellation for one generation request.

CDP calls have no cooperative-cancellation primitive, so the deadline is a
shared flag checked at sequence boundaries. Steps already dispatched are
never aborted mid-flight: when the deadline wins a race, the step's task is
left to settle and its outcome is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from .errors import GenerationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard_outcome(task: asyncio.Future) -> None:
    """Retrieve a late step's result so asyncio doesn't warn about it."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Discarded late step failure after cancellation: %s", exc)


class CancellationEnvelope:
    """Deadline timer + cancellation flag shared across one request."""

    __slots__ = ("timeout_ms", "_canceled", "_fired", "_handle")

    def __init__(self, timeout_ms: float | None = None) -> None:
        self.timeout_ms = timeout_ms
        self._canceled = False
        self._fired = asyncio.Event()
        self._handle: asyncio.TimerHandle | None = None

    @property
    def has_deadline(self) -> bool:
        return self.timeout_ms is not None and self.timeout_ms > 0

    @property
    def canceled(self) -> bool:
        return self._canceled

    def is_canceled(self) -> bool:
        return self._canceled

    def arm(self) -> None:
        """Start the deadline clock. No-op when no positive timeout is set."""
        if not self.has_deadline or self._handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.timeout_ms / 1000, self._on_deadline)
        logger.debug("Deadline armed: %sms", self.timeout_ms)

    def _on_deadline(self) -> None:
        self._handle = None
        logger.info("Generation deadline of %sms elapsed", self.timeout_ms)
        self.cancel()

    def cancel(self) -> None:
        """Set the flag. Flips exactly once; later calls are ignored."""
        if self._canceled:
            return
        self._canceled = True
        self._fired.set()

    def close(self) -> None:
        """Disarm the timer. Called once the request has settled."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def throw_if_canceled(self, stage: str | None = None) -> None:
        if self._canceled:
            raise GenerationTimeoutError(stage=stage)

    async def guard(self, step: Awaitable[T], stage: str | None = None) -> T:
        """Await *step* under the envelope.

        Raises GenerationTimeoutError before starting if already canceled,
        or as soon as the flag flips while the step is in flight.
        """
        if self._canceled:
            # Never start the step; close an unstarted coroutine cleanly.
            close = getattr(step, "close", None)
            if close is not None:
                close()
            raise GenerationTimeoutError(stage=stage)

        # Raced even without a deadline so a manual cancel() is honoured.
        task = asyncio.ensure_future(step)
        waiter = asyncio.ensure_future(self._fired.wait())
        try:
            done, _pending = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.add_done_callback(_discard_outcome)
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.add_done_callback(_discard_outcome)
        raise GenerationTimeoutError(stage=stage)

    async def sleep(self, delay_ms: float, stage: str | None = None) -> None:
        """Timer wait that is itself a guarded suspend point."""
        await self.guard(asyncio.sleep(max(delay_ms, 0) / 1000), stage=stage)
        self.throw_if_canceled(stage)
