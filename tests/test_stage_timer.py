# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for StageTimer."""

from __future__ import annotations

from htmlpdf.stage_timer import StageTimer


class TestStageTimer:
    def test_stage_tracking(self):
        timer = StageTimer()
        timer.stage("connecting")
        timer.stage("navigating")
        timer.stage("printing")
        timer.finalize()

        stages = timer.elapsed_per_stage()
        assert list(stages.keys()) == ["connecting", "navigating", "printing"]
        assert all(isinstance(v, float) for v in stages.values())

    def test_current_stage(self):
        timer = StageTimer()
        assert timer.current_stage is None

        timer.stage("connecting")
        assert timer.current_stage == "connecting"

        timer.finalize()
        assert timer.current_stage is None

    def test_timeout_report_structure(self):
        timer = StageTimer()
        timer.stage("connecting")
        timer.stage("navigating")

        report = timer.timeout_report()
        assert report["error"] == "timeout"
        assert report["timed_out_at"] == "navigating"
        assert [s["stage"] for s in report["completed_stages"]] == ["connecting"]
        assert isinstance(report["total_ms"], float)
        assert "load event" in report["hint"]

    def test_explicit_stage_overrides_current(self):
        timer = StageTimer()
        timer.stage("post_navigate")
        timer.finalize()
        report = timer.timeout_report("post_navigate")
        assert report["timed_out_at"] == "post_navigate"
        assert report["timed_out_stage_ms"] == 0

    def test_timeout_report_no_stages(self):
        report = StageTimer().timeout_report()
        assert report["timed_out_at"] == "unknown"
        assert report["completed_stages"] == []

    def test_hint_for_known_stages(self):
        assert "CDP connection" in StageTimer.hint_for_stage("connecting")
        assert "Completion trigger" in StageTimer.hint_for_stage("post_navigate")
        assert "printToPDF" in StageTimer.hint_for_stage("printing")

    def test_hint_for_unknown_stage(self):
        assert "custom_stage" in StageTimer.hint_for_stage("custom_stage")

    def test_elapsed_includes_current_stage(self):
        timer = StageTimer()
        timer.stage("printing")
        stages = timer.elapsed_per_stage()
        assert stages["printing"] >= 0

    def test_finalize_idempotent(self):
        timer = StageTimer()
        timer.stage("a")
        timer.finalize()
        timer.finalize()
        assert len(timer.elapsed_per_stage()) == 1
