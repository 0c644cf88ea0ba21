"""Tests for the sync data models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from azsync.sync.models import (
    Decision,
    SideState,
    SyncMode,
    SyncOutcome,
    SyncReport,
    SyncSettings,
    SyncStatus,
    normalize_timestamp,
)


class TestSyncMode:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("auto", SyncMode.AUTO),
            ("sync", SyncMode.AUTO),
            ("PUSH", SyncMode.PUSH),
            ("pull", SyncMode.PULL),
            ("pull-always", SyncMode.PULL_ALWAYS),
            ("pull_always", SyncMode.PULL_ALWAYS),
        ],
    )
    def test_parse(self, name, expected):
        assert SyncMode.parse(name) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown sync mode"):
            SyncMode.parse("push-always")


class TestNormalizeTimestamp:
    def test_epoch_seconds(self):
        assert normalize_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_truncates_microseconds(self):
        ts = normalize_timestamp(1.75)
        assert ts.microsecond == 0
        assert ts.second == 1

    def test_naive_is_utc(self):
        naive = datetime(2026, 3, 1, 8, 30)
        assert normalize_timestamp(naive) == naive.replace(tzinfo=timezone.utc)

    def test_converts_offsets_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        ts = normalize_timestamp(datetime(2026, 3, 1, 10, 0, tzinfo=plus_two))
        assert ts == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
        assert ts.tzinfo == timezone.utc


class TestSideState:
    def test_absent(self):
        state = SideState.absent()
        assert state.present is False
        assert state.modified is None

    def test_present_requires_timestamp(self):
        with pytest.raises(ValidationError):
            SideState(present=True)

    def test_absent_forbids_timestamp(self):
        with pytest.raises(ValidationError):
            SideState(present=False, modified=10)

    def test_handle_is_opaque(self):
        state = SideState.at(10, handle='"0x8DC"')
        assert state.handle == '"0x8DC"'

    def test_frozen(self):
        state = SideState.at(10)
        with pytest.raises(ValidationError):
            state.present = False


def _outcome(key, status, decision=Decision.NOOP, **kw):
    return SyncOutcome(key=key, status=status, decision=decision, **kw)


class TestSyncReport:
    def _report(self):
        return SyncReport(
            mode=SyncMode.AUTO,
            outcomes=[
                _outcome("A", SyncStatus.APPLIED, Decision.PUSH),
                _outcome("B", SyncStatus.APPLIED, Decision.PULL),
                _outcome("C", SyncStatus.SKIPPED, reason="unchanged"),
                _outcome("D", SyncStatus.FAILED, Decision.PUSH, error="boom", error_kind="transient"),
                _outcome("E", SyncStatus.CANCELED),
            ],
            started_at="2026-01-01T00:00:00+00:00",
        )

    def test_status_views(self):
        report = self._report()
        assert [o.key for o in report.applied] == ["A", "B"]
        assert [o.key for o in report.pushed] == ["A"]
        assert [o.key for o in report.pulled] == ["B"]
        assert [o.key for o in report.skipped] == ["C"]
        assert [o.key for o in report.failed] == ["D"]
        assert [o.key for o in report.canceled] == ["E"]
        assert report.has_failures

    def test_counts(self):
        assert self._report().counts() == {
            "applied": 2,
            "skipped": 1,
            "failed": 1,
            "canceled": 1,
            "total": 5,
        }

    def test_pending_lists_skipped_transfers(self):
        report = SyncReport(
            mode=SyncMode.AUTO,
            dry_run=True,
            outcomes=[
                _outcome("A", SyncStatus.SKIPPED, Decision.PUSH),
                _outcome("B", SyncStatus.SKIPPED),
            ],
            started_at="2026-01-01T00:00:00+00:00",
        )
        assert [o.key for o in report.pending] == ["A"]
        assert not report.has_failures

    def test_summary(self):
        summary = self._report().summary()
        assert "Sync report (auto)" in summary
        assert "Failed:   1" in summary


class TestSyncSettings:
    def test_defaults(self):
        settings = SyncSettings()
        assert settings.mode is SyncMode.AUTO
        assert settings.max_parallel == 8
        assert settings.retry_attempts == 4
        assert settings.warn_on_overwrite is True

    def test_mode_from_string(self):
        assert SyncSettings(mode="sync").mode is SyncMode.AUTO

    @pytest.mark.parametrize("value", [0, 65])
    def test_max_parallel_bounds(self, value):
        with pytest.raises(ValidationError):
            SyncSettings(max_parallel=value)

    def test_retry_attempts_bounds(self):
        with pytest.raises(ValidationError):
            SyncSettings(retry_attempts=0)
