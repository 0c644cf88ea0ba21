"""Tests for the core sync engine."""

from __future__ import annotations

import threading
from typing import Any

import pytest

from azsync.errors import FatalError, TransientError
from azsync.sync.engine import SyncEngine
from azsync.sync.models import (
    Decision,
    SyncMode,
    SyncSettings,
    SyncStatus,
    normalize_timestamp,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engine(local, remote, fast_settings, **overrides: Any) -> SyncEngine:
    return SyncEngine(local, remote, fast_settings(**overrides))


def _statuses(report) -> dict[str, SyncStatus]:
    return {o.key: o.status for o in report.outcomes}


def _decisions(report) -> dict[str, Decision]:
    return {o.key: o.decision for o in report.outcomes}


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    """End-to-end runs against in-memory sides."""

    def test_auto_pushes_newer_local(self, local, remote, fast_settings) -> None:
        local.put("A", "x", 100)
        remote.put("A", "y", 50)

        report = _engine(local, remote, fast_settings).run(["A"])

        assert report.outcomes[0].status == SyncStatus.APPLIED
        assert report.outcomes[0].decision == Decision.PUSH
        assert remote.items["A"] == ("x", normalize_timestamp(100))

    def test_pull_keeps_newer_local(self, local, remote, fast_settings) -> None:
        local.put("B", "x", 100)
        remote.put("B", "y", 50)

        report = _engine(local, remote, fast_settings, mode="pull").run(["B"])

        assert report.outcomes[0].status == SyncStatus.SKIPPED
        assert report.outcomes[0].decision == Decision.NOOP
        assert local.items["B"] == ("x", normalize_timestamp(100))
        assert remote.count("write") == 0

    def test_pull_always_overwrites_newer_local(
        self, local, remote, fast_settings
    ) -> None:
        local.put("C", "x", 100)
        remote.put("C", "y", 50)

        report = _engine(local, remote, fast_settings, mode="pull-always").run(
            ["C"]
        )

        assert report.outcomes[0].status == SyncStatus.APPLIED
        assert local.items["C"] == ("y", normalize_timestamp(50))

    def test_creates_missing_sides(self, local, remote, fast_settings) -> None:
        local.put("ONLY_LOCAL", "l", 10)
        remote.put("ONLY_REMOTE", "r", 20)

        report = _engine(local, remote, fast_settings).run(
            ["ONLY_LOCAL", "ONLY_REMOTE", "NOWHERE"]
        )

        assert _decisions(report) == {
            "ONLY_LOCAL": Decision.PUSH,
            "ONLY_REMOTE": Decision.PULL,
            "NOWHERE": Decision.NOOP,
        }
        assert remote.items["ONLY_LOCAL"] == ("l", normalize_timestamp(10))
        assert local.items["ONLY_REMOTE"] == ("r", normalize_timestamp(20))
        assert "NOWHERE" not in local.items


class TestIdempotence:
    @pytest.mark.parametrize("mode", list(SyncMode))
    def test_second_run_is_all_skipped(
        self, local, remote, fast_settings, mode
    ) -> None:
        local.put("A", "a", 100)
        remote.put("A", "a2", 50)
        local.put("B", "b", 10)
        remote.put("B", "b2", 90)
        remote.put("C", "c", 30)
        local.put("D", "d", 40)
        keys = ["A", "B", "C", "D"]

        engine = _engine(local, remote, fast_settings, mode=mode)
        engine.run(keys)
        writes = local.count("write") + remote.count("write")

        second = engine.run(keys)

        assert all(o.status == SyncStatus.SKIPPED for o in second.outcomes)
        assert local.count("write") + remote.count("write") == writes


class TestErrorIsolation:
    def test_failing_key_does_not_abort(self, local, remote, fast_settings) -> None:
        for key in ("1", "2", "3"):
            local.put(key, f"v{key}", 100)
        remote.fail("write", "2", TransientError("throttled"))

        report = _engine(local, remote, fast_settings, retry_attempts=2).run(
            ["1", "2", "3"]
        )

        assert _statuses(report) == {
            "1": SyncStatus.APPLIED,
            "2": SyncStatus.FAILED,
            "3": SyncStatus.APPLIED,
        }
        assert report.has_failures
        assert report.failed[0].error_kind == "transient"
        assert "2" not in remote.items

    def test_query_failure_fails_key(self, local, remote, fast_settings) -> None:
        local.put("A", "x", 10)
        local.put("B", "y", 10)
        remote.fail("query", "A", TransientError("timeout"))

        report = _engine(local, remote, fast_settings, retry_attempts=2).run(
            ["A", "B"]
        )

        assert _statuses(report) == {
            "A": SyncStatus.FAILED,
            "B": SyncStatus.APPLIED,
        }
        assert remote.count("query", "A") == 2

    def test_transient_query_failure_is_retried(
        self, local, remote, fast_settings
    ) -> None:
        local.put("A", "x", 10)
        remote.fail("query", "A", TransientError("timeout"), times=1)

        report = _engine(local, remote, fast_settings).run(["A"])

        assert report.outcomes[0].status == SyncStatus.APPLIED

    def test_fatal_error_aborts_run(self, local, remote, fast_settings) -> None:
        local.put("A", "x", 10)
        remote.fail("query", "A", FatalError("Unauthorized"))

        engine = _engine(local, remote, fast_settings)
        with pytest.raises(FatalError, match="Unauthorized"):
            engine.run(["A"])
        assert engine.canceled


class TestDryRun:
    def test_dry_run_makes_no_changes(self, local, remote, fast_settings) -> None:
        local.put("A", "x", 100)
        remote.put("B", "y", 100)
        local.put("C", "z", 100)
        remote.put("C", "z", 100)

        report = _engine(local, remote, fast_settings).run(
            ["A", "B", "C"], dry_run=True
        )

        assert report.dry_run
        assert all(o.status == SyncStatus.SKIPPED for o in report.outcomes)
        assert [o.key for o in report.pending] == ["A", "B"]
        assert _decisions(report)["C"] == Decision.NOOP
        assert local.count("write") == remote.count("write") == 0
        assert local.count("read") == remote.count("read") == 0


class TestCancellation:
    def test_cancel_before_run(self, local, remote, fast_settings) -> None:
        for key in ("1", "2", "3"):
            local.put(key, "v", 10)
        engine = _engine(local, remote, fast_settings)
        engine.cancel()

        report = engine.run(["1", "2", "3"])

        assert all(o.status == SyncStatus.CANCELED for o in report.outcomes)
        assert remote.count("write") == 0

    def test_cancel_during_run_finishes_in_flight(
        self, local, remote, fast_settings
    ) -> None:
        for key in ("1", "2", "3"):
            local.put(key, "v", 10)
        engine = _engine(local, remote, fast_settings, max_parallel=1)

        original_write = remote.write

        def write_then_cancel(key, payload, modified):
            original_write(key, payload, modified)
            engine.cancel()

        remote.write = write_then_cancel

        report = engine.run(["1", "2", "3"])

        assert _statuses(report) == {
            "1": SyncStatus.APPLIED,
            "2": SyncStatus.CANCELED,
            "3": SyncStatus.CANCELED,
        }
        assert list(remote.items) == ["1"]


class TestConcurrency:
    def test_parallelism_is_bounded(self, local, remote, fast_settings) -> None:
        keys = [f"k{i}" for i in range(12)]
        for key in keys:
            local.put(key, "v", 10)

        lock = threading.Lock()
        active = 0
        peak = 0
        original_read = local.read

        def tracking_read(key):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            try:
                threading.Event().wait(0.01)
                return original_read(key)
            finally:
                with lock:
                    active -= 1

        local.read = tracking_read

        report = _engine(local, remote, fast_settings, max_parallel=3).run(keys)

        assert len(report.applied) == 12
        assert peak <= 3

    def test_outcomes_follow_key_order(self, local, remote, fast_settings) -> None:
        keys = ["z", "a", "m", "b"]
        for key in keys:
            local.put(key, "v", 10)

        report = _engine(local, remote, fast_settings).run(keys + ["a"])

        assert [o.key for o in report.outcomes] == keys


class TestAsyncEntry:
    async def test_run_async(self, local, remote) -> None:
        local.put("A", "x", 10)
        settings = SyncSettings(retry_base_delay=0, retry_max_delay=0)

        report = await SyncEngine(local, remote, settings).run_async(["A"])

        assert report.outcomes[0].status == SyncStatus.APPLIED

    async def test_empty_key_set(self, local, remote) -> None:
        report = await SyncEngine(local, remote).run_async([])
        assert report.outcomes == []
