"""Pydantic models for the sync engine.

Defines the core data contracts used across all sync modules:

- ``SyncMode``: Which side is authoritative when timestamps diverge.
- ``Decision``: What to do with one key (nothing, push, or pull).
- ``SideState``: Existence and timestamp of a key on one side.
- ``Reconciliation``: A decision plus the reason and source timestamp.
- ``SyncOutcome``: Outcome of syncing one key.
- ``SyncReport``: Aggregate results for a full sync run.
- ``SyncSettings``: Explicit run configuration passed to the engine.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class SyncMode(str, Enum):
    """Policy governing which side wins when timestamps diverge."""

    AUTO = "auto"
    PUSH = "push"
    PULL = "pull"
    PULL_ALWAYS = "pull-always"

    @classmethod
    def parse(cls, value: str | SyncMode) -> SyncMode:
        """Parse a mode name, accepting ``sync`` as an alias for ``auto``.

        Raises:
            ValueError: If the name is not a known mode.
        """
        if isinstance(value, SyncMode):
            return value
        name = value.strip().lower().replace("_", "-")
        if name == "sync":
            return cls.AUTO
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(
                f"Unknown sync mode: '{value}'. Valid modes: {valid}"
            ) from None


class Decision(str, Enum):
    """Action decided for a single key."""

    NOOP = "noop"
    PUSH = "push"
    PULL = "pull"


class SyncStatus(str, Enum):
    """Final status of a single key in a run."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELED = "canceled"


def normalize_timestamp(value: datetime | int | float) -> datetime:
    """Return *value* as a UTC-aware datetime truncated to whole seconds.

    Naive datetimes are assumed to be UTC.  Integers and floats are read as
    Unix epoch seconds.  Truncation keeps timestamps exactly comparable after
    a round-trip through stores that only keep second resolution (HTTP
    ``Last-Modified``, RFC 3339 metadata, Key Vault attributes).
    """
    if isinstance(value, (int, float)):
        value = datetime.fromtimestamp(value, tz=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


class SideState(BaseModel):
    """State of one key on one side.

    Attributes:
        present: Whether the key exists on this side.
        modified: Last-modified timestamp; required when present.
        handle: Opaque adapter reference (path, ETag, version id...).
            Never the materialised value.
    """

    present: bool
    modified: datetime | None = None
    handle: Any = None

    model_config = {"frozen": True}

    @field_validator("modified", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        if value is None:
            return None
        return normalize_timestamp(value)

    @model_validator(mode="after")
    def _check_timestamp(self) -> SideState:
        if self.present and self.modified is None:
            raise ValueError("A present state must carry a timestamp")
        if not self.present and self.modified is not None:
            raise ValueError("An absent state cannot carry a timestamp")
        return self

    @classmethod
    def absent(cls) -> SideState:
        """State for a key that does not exist on this side."""
        return cls(present=False)

    @classmethod
    def at(
        cls, modified: datetime | int | float, handle: Any = None
    ) -> SideState:
        """State for a key present with the given timestamp."""
        return cls(present=True, modified=modified, handle=handle)


class Reconciliation(BaseModel):
    """A decision with the context needed to execute and report it.

    Attributes:
        decision: The action to take.
        reason: Short human-readable reason for the decision.
        source_modified: Timestamp of the source side at decision time;
            the destination is stamped with exactly this value.
    """

    decision: Decision
    reason: str
    source_modified: datetime | None = None

    model_config = {"frozen": True}


class SyncOutcome(BaseModel):
    """Result of syncing one key.

    Attributes:
        key: The synchronised key.
        decision: Decision taken for the key.
        status: Whether the decision was applied, skipped, failed or canceled.
        reason: Reason attached to the decision (e.g. ``"unchanged"``).
        error: Error message if the key failed.
        error_kind: Failure class (``transient``, ``invariant``, ``error``).
    """

    key: str
    decision: Decision = Decision.NOOP
    status: SyncStatus
    reason: str | None = None
    error: str | None = None
    error_kind: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        mode: Sync mode used for the run.
        dry_run: Whether decisions were computed without executing them.
        outcomes: One outcome per key, in enumeration order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    mode: SyncMode
    dry_run: bool = False
    outcomes: list[SyncOutcome] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_status(self, status: SyncStatus) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def applied(self) -> list[SyncOutcome]:
        """Outcomes whose transfer was carried out."""
        return self._with_status(SyncStatus.APPLIED)

    @property
    def skipped(self) -> list[SyncOutcome]:
        """Outcomes that required (or, in a dry run, performed) no I/O."""
        return self._with_status(SyncStatus.SKIPPED)

    @property
    def failed(self) -> list[SyncOutcome]:
        """Outcomes that failed."""
        return self._with_status(SyncStatus.FAILED)

    @property
    def canceled(self) -> list[SyncOutcome]:
        """Outcomes never finalised because the run was canceled."""
        return self._with_status(SyncStatus.CANCELED)

    @property
    def pushed(self) -> list[SyncOutcome]:
        """Applied outcomes that moved local to remote."""
        return [o for o in self.applied if o.decision == Decision.PUSH]

    @property
    def pulled(self) -> list[SyncOutcome]:
        """Applied outcomes that moved remote to local."""
        return [o for o in self.applied if o.decision == Decision.PULL]

    @property
    def pending(self) -> list[SyncOutcome]:
        """Outcomes with a transfer decided but not applied."""
        return [
            o
            for o in self.outcomes
            if o.decision != Decision.NOOP
            and o.status == SyncStatus.SKIPPED
        ]

    @property
    def has_failures(self) -> bool:
        """True if any key failed."""
        return any(o.status == SyncStatus.FAILED for o in self.outcomes)

    def counts(self) -> dict[str, int]:
        """Number of outcomes per status, plus the total."""
        counts = {status.value: 0 for status in SyncStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        counts["total"] = len(self.outcomes)
        return counts

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by status.
        """
        counts = self.counts()
        lines = [
            f"Sync report ({self.mode.value})"
            + (" (dry run)" if self.dry_run else ""),
            f"  Applied:  {counts['applied']}",
            f"  Skipped:  {counts['skipped']}",
            f"  Failed:   {counts['failed']}",
            f"  Canceled: {counts['canceled']}",
            f"  Total:    {counts['total']}",
        ]
        return "\n".join(lines)


class SyncSettings(BaseModel):
    """Run configuration passed explicitly into the engine.

    Attributes:
        mode: Sync mode for the run.
        max_parallel: Maximum number of keys processed concurrently.
        retry_attempts: Total attempts per adapter call on transient errors.
        retry_base_delay: Initial backoff delay in seconds.
        retry_max_delay: Upper bound for a single backoff delay.
        warn_on_overwrite: Log a warning when push mode overwrites a
            strictly newer remote value.
    """

    mode: SyncMode = SyncMode.AUTO
    max_parallel: int = Field(default=8, ge=1, le=64)
    retry_attempts: int = Field(default=4, ge=1, le=10)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)
    warn_on_overwrite: bool = True

    model_config = {"frozen": True}

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SyncMode.parse(value)
        return value
