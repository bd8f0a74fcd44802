# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CDP client boundary.

``ProtocolClient`` is the slice of Playwright's ``CDPSession`` this package
uses. Tests substitute a fake that satisfies the same shape.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError

from .cancellation import CancellationEnvelope
from .errors import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class ProtocolClient(Protocol):
    """Interface for a page-scoped CDP session."""

    async def send(self, method: str, params: dict | None = None) -> dict: ...

    def on(self, event: str, f: Callable[..., Any]) -> None: ...

    def once(self, event: str, f: Callable[..., Any]) -> None: ...

    def remove_listener(self, event: str, f: Callable[..., Any]) -> None: ...


async def send(
    client: ProtocolClient,
    envelope: CancellationEnvelope,
    method: str,
    params: dict | None = None,
    *,
    stage: str | None = None,
) -> dict:
    """Issue one CDP command under the envelope.

    CDP error responses and dropped connections surface as TransportError
    carrying the original message.
    """
    envelope.throw_if_canceled(stage)
    logger.debug("CDP %s", method)
    try:
        result = await envelope.guard(client.send(method, params), stage=stage)
    except PlaywrightError as exc:
        raise TransportError(str(exc)) from exc
    return result or {}
