# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Per-state latency tracking for one generation request.

Lives outside the cancellation envelope so it survives a timeout and can
say where the request was when the deadline hit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

_HINTS = {
    "connecting": "Chromium did not start or accept a CDP connection in time.",
    "pre_navigate": "Enabling CDP domains or setting cookies is stalling.",
    "navigating": "Page may be slow to load or never fire its load event.",
    "post_navigate": "Completion trigger never reported the page as ready.",
    "printing": "Page.printToPDF is slow. Large documents take longer to print.",
}


def _ms(start_ns: int, end_ns: int) -> float:
    return round((end_ns - start_ns) / 1e6, 1)


@dataclass(slots=True)
class StageRecord:
    name: str
    start_ns: int
    end_ns: int | None = None

    def elapsed_ms(self, now_ns: int) -> float:
        return _ms(self.start_ns, self.end_ns if self.end_ns is not None else now_ns)


class StageTimer:
    """Orchestrator state transitions, in order, with their durations."""

    __slots__ = ("_records", "_origin_ns")

    def __init__(self) -> None:
        self._records: list[StageRecord] = []
        self._origin_ns = time.monotonic_ns()

    @property
    def _open(self) -> StageRecord | None:
        if self._records and self._records[-1].end_ns is None:
            return self._records[-1]
        return None

    def stage(self, name: str) -> None:
        """Close the open stage, if any, and open *name*."""
        now = time.monotonic_ns()
        self.finalize(now)
        self._records.append(StageRecord(name=name, start_ns=now))

    def finalize(self, now_ns: int | None = None) -> None:
        """Close the open stage. No-op when nothing is open."""
        current = self._open
        if current is not None:
            current.end_ns = now_ns if now_ns is not None else time.monotonic_ns()

    @property
    def current_stage(self) -> str | None:
        current = self._open
        return current.name if current else None

    def elapsed_per_stage(self) -> dict[str, float]:
        """{stage: ms}, the open stage measured up to now."""
        now = time.monotonic_ns()
        return {r.name: r.elapsed_ms(now) for r in self._records}

    def total_ms(self) -> float:
        return _ms(self._origin_ns, time.monotonic_ns())

    def timeout_report(self, stage: str | None = None) -> dict:
        """Where the deadline hit and how long each earlier stage took."""
        now = time.monotonic_ns()
        current = self._open
        closed = [r for r in self._records if r is not current]
        where = stage or (current.name if current else "unknown")
        return {
            "error": "timeout",
            "completed_stages": [{"stage": r.name, "ms": r.elapsed_ms(now)} for r in closed],
            "timed_out_at": where,
            "timed_out_stage_ms": current.elapsed_ms(now) if current else 0,
            "total_ms": _ms(self._origin_ns, now),
            "hint": self.hint_for_stage(where),
        }

    @staticmethod
    def hint_for_stage(stage: str) -> str:
        return _HINTS.get(stage, f"Timed out during '{stage}' stage.")
