# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""htmlpdf: HTML to PDF through Chromium's DevTools Protocol.

``create()`` launches (or attaches to) Chromium, navigates one fresh tab to
the content, waits for an optional completion trigger, and prints the page:

    result = await htmlpdf.create("<h1>hi</h1>", CreateOptions(timeout_ms=5000))
    result.to_file("hi.pdf")
"""

from __future__ import annotations

from .cancellation import CancellationEnvelope
from .completion_triggers import (
    AllOf,
    AnyOf,
    CallbackTrigger,
    CompletionTrigger,
    ElementTrigger,
    EventTrigger,
    TimerTrigger,
    VariableTrigger,
    WaitOutcome,
)
from .errors import (
    EvaluationError,
    GenerationTimeoutError,
    HtmlPdfError,
    ResourceError,
    TransportError,
    TriggerTimeoutError,
)
from .logging_config import request_scope
from .navigator import GenerationState, Navigator, resolve_url
from .options import CreateOptions, PrintOptions
from .result import CreateResult

__all__ = [
    "AllOf",
    "AnyOf",
    "CallbackTrigger",
    "CompletionTrigger",
    "CreateOptions",
    "CreateResult",
    "ElementTrigger",
    "EvaluationError",
    "EventTrigger",
    "GenerationState",
    "GenerationTimeoutError",
    "HtmlPdfError",
    "PrintOptions",
    "ResourceError",
    "TimerTrigger",
    "TransportError",
    "TriggerTimeoutError",
    "VariableTrigger",
    "WaitOutcome",
    "create",
    "resolve_url",
]


async def create(content: str, options: CreateOptions | None = None) -> CreateResult:
    """Generate a PDF from HTML text or a URL.

    Args:
        content: Raw HTML, or an http(s)/file/data URL.
        options: Generation options. Defaults launch a local Chromium with
            no deadline and no completion trigger.

    Raises:
        GenerationTimeoutError: ``options.timeout_ms`` elapsed first.
        TransportError: Chromium launch, connection or CDP failure.
        EvaluationError: the completion trigger failed on the page.
    """
    options = options or CreateOptions()
    envelope = CancellationEnvelope(options.timeout_ms)
    with request_scope():
        envelope.arm()
        try:
            return await Navigator(options, envelope).generate(content)
        finally:
            envelope.close()
