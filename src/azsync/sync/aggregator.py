"""Thread-safe collection of per-key outcomes.

Every key gets one slot, reserved in enumeration order when the aggregator
is created.  Workers fill their own slot; ``finalize()`` marks any slot
still empty as canceled and builds the ``SyncReport``.  The aggregator only
records: it never retries and never influences a decision.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Iterable

from azsync.sync.models import (
    SyncMode,
    SyncOutcome,
    SyncReport,
    SyncStatus,
)

CANCELED_REASON = "run canceled"


class ResultAggregator:
    """Accumulate one ``SyncOutcome`` per key.

    Args:
        keys: Keys of the run, in the order they should be reported.
        mode: Sync mode recorded in the report.
        dry_run: Whether the run only computes decisions.
    """

    def __init__(
        self, keys: Iterable[str], mode: SyncMode, dry_run: bool = False
    ) -> None:
        self.mode = mode
        self.dry_run = dry_run
        self.started_at = datetime.now(timezone.utc).isoformat()
        self._slots: dict[str, SyncOutcome | None] = dict.fromkeys(keys)
        self._lock = threading.Lock()

    @property
    def keys(self) -> list[str]:
        return list(self._slots)

    def record(self, outcome: SyncOutcome) -> None:
        """Store *outcome* in its key's slot.

        Raises:
            KeyError: If the key is not part of the run.
            ValueError: If the key already has an outcome.
        """
        with self._lock:
            if outcome.key not in self._slots:
                raise KeyError(f"Unknown key: {outcome.key}")
            if self._slots[outcome.key] is not None:
                raise ValueError(f"Outcome already recorded for {outcome.key}")
            self._slots[outcome.key] = outcome

    def is_recorded(self, key: str) -> bool:
        with self._lock:
            return self._slots.get(key) is not None

    def outcomes(self) -> list[SyncOutcome]:
        """Outcomes recorded so far, in key order."""
        with self._lock:
            return [o for o in self._slots.values() if o is not None]

    def counts(self) -> dict[str, int]:
        """Recorded outcomes per status (unrecorded keys are not counted)."""
        counts = {status.value: 0 for status in SyncStatus}
        for outcome in self.outcomes():
            counts[outcome.status.value] += 1
        return counts

    def finalize(self) -> SyncReport:
        """Build the report; keys without an outcome are ``Canceled``."""
        with self._lock:
            outcomes = [
                outcome
                if outcome is not None
                else SyncOutcome(
                    key=key,
                    status=SyncStatus.CANCELED,
                    reason=CANCELED_REASON,
                )
                for key, outcome in self._slots.items()
            ]
        return SyncReport(
            mode=self.mode,
            dry_run=self.dry_run,
            outcomes=outcomes,
            started_at=self.started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
