# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""htmlpdf exception hierarchy.

All htmlpdf-specific errors inherit from HtmlPdfError, allowing callers
to catch the base class for any generation failure or specific subclasses
for targeted handling. Nothing in this package retries on any of them.
"""

from __future__ import annotations


class HtmlPdfError(Exception):
    """Base exception for all htmlpdf errors."""


class GenerationTimeoutError(HtmlPdfError, TimeoutError):
    """The request deadline elapsed before the PDF was produced."""

    def __init__(
        self,
        message: str = "htmlpdf.create() timed out.",
        *,
        stage: str | None = None,
        report: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.report = report or {}


class TransportError(HtmlPdfError):
    """Connection, CDP protocol, or Chromium launch failure."""


class EvaluationError(HtmlPdfError):
    """A completion trigger's page-side script raised an exception."""


class TriggerTimeoutError(EvaluationError):
    """A completion trigger gave up before the page became ready."""


class ResourceError(HtmlPdfError):
    """Generated PDF could not be persisted (e.g. unwritable path)."""
