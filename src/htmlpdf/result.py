# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Generated PDF, exposed as base64, bytes, a stream, or a file."""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path

from .errors import ResourceError

logger = logging.getLogger(__name__)


class CreateResult:
    """Immutable holder of base64-encoded PDF data."""

    __slots__ = ("_data",)

    def __init__(self, data: str) -> None:
        if not data:
            raise ValueError("PDF data must not be empty")
        self._data = data

    def __repr__(self) -> str:
        return f"CreateResult(<{len(self._data)} base64 chars>)"

    def to_base64(self) -> str:
        return self._data

    def to_bytes(self) -> bytes:
        return base64.b64decode(self._data)

    def to_stream(self) -> io.BytesIO:
        """Fresh readable stream positioned at the start."""
        return io.BytesIO(self.to_bytes())

    def to_file(self, path: str | Path) -> Path:
        """Write the PDF to *path*.

        Raises:
            ResourceError: if the file cannot be written.
        """
        target = Path(path)
        try:
            target.write_bytes(self.to_bytes())
        except OSError as exc:
            raise ResourceError(f"Cannot write PDF to {target}: {exc}") from exc
        logger.info("PDF written to %s", target)
        return target
