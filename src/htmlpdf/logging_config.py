# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Per-request log correlation for htmlpdf, rendered through structlog.

``create()`` enters ``request_scope()``, which binds a short ``request_id``
contextvar for the duration of one generation. Every record logged while it is
bound, from the navigator, the session teardown or the Chromium launcher,
carries that id, so interleaved concurrent requests can be told apart.

Library modules only call ``logging.getLogger(__name__)`` and nothing is
configured on import. Applications (and the CLI) call ``configure()`` once to
route those stdlib records through structlog's console or JSON renderer.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

import structlog

# Loggers that are chatty at DEBUG and rarely useful next to htmlpdf's own.
_NOISY_LOGGERS = ("asyncio",)


@contextmanager
def request_scope(request_id: str | None = None) -> Iterator[str]:
    """Bind ``request_id`` (a fresh 12-hex id by default) for one request."""
    request_id = request_id or uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(request_id=request_id):
        yield request_id


def configure(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Install one structlog-formatted handler on the root logger.

    Args:
        json_output: JSON lines for log shippers instead of console output.
        level: Root level name; unknown names fall back to INFO.
        stream: Destination, stderr by default so stdout stays free for output.
    """
    stream = stream or sys.stderr
    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(root_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.INFO))
