"""Shared pytest fixtures for azsync tests."""

from __future__ import annotations

import threading
from datetime import datetime

import pytest

from azsync.adapters.base import Payload, as_text
from azsync.errors import ItemNotFoundError
from azsync.sync.models import SideState, SyncSettings, normalize_timestamp


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Azure subscription",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Azure subscription"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        # --run-live given: do not skip live tests
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeAdapter:
    """In-memory side adapter.

    Stores ``key -> (value, modified)`` and records every call.  Failures
    are injected per ``(operation, key)`` with ``fail()``.
    """

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.items: dict[str, tuple[str, datetime]] = {}
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], list] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: str, modified) -> None:
        self.items[key] = (value, normalize_timestamp(modified))

    def fail(self, op: str, key: str, exc: Exception, times: int | None = None) -> None:
        """Raise *exc* from ``op(key)``; *times* ``None`` means always."""
        self._failures[(op, key)] = [exc, times]

    def _call(self, op: str, key: str) -> None:
        with self._lock:
            self.calls.append((op, key))
            failure = self._failures.get((op, key))
            if failure is None:
                return
            exc, times = failure
            if times is not None:
                if times <= 0:
                    return
                failure[1] = times - 1
        raise exc

    def count(self, op: str, key: str | None = None) -> int:
        return sum(
            1 for o, k in self.calls if o == op and (key is None or k == key)
        )

    # SideAdapter contract

    def query(self, key: str) -> SideState:
        self._call("query", key)
        if key not in self.items:
            return SideState.absent()
        return SideState.at(self.items[key][1], handle=key)

    def read(self, key: str) -> str:
        self._call("read", key)
        if key not in self.items:
            raise ItemNotFoundError(f"{key} not found", key=key)
        return self.items[key][0]

    def write(self, key: str, payload: Payload, modified: datetime) -> None:
        self._call("write", key)
        self.items[key] = (as_text(payload), normalize_timestamp(modified))

    def list_keys(self) -> list[str]:
        return list(self.items)


@pytest.fixture
def local():
    """Empty in-memory local side."""
    return FakeAdapter("local")


@pytest.fixture
def remote():
    """Empty in-memory remote side."""
    return FakeAdapter("remote")


@pytest.fixture
def fast_settings():
    """Factory for settings without retry delays."""

    def _make(**overrides) -> SyncSettings:
        values = {"retry_base_delay": 0.0, "retry_max_delay": 0.0}
        values.update(overrides)
        return SyncSettings(**values)

    return _make

