"""Error taxonomy shared by adapters, the executor and the CLI.

The engine only distinguishes failure *classes*:

- ``TransientError`` -- network blips, throttling, timeouts.  Retried with
  backoff by the executor; exhaustion fails only the affected key.
- ``FatalError`` -- authentication/authorization failures and malformed
  configuration.  Aborts the whole run; retrying cannot help.
- ``ItemNotFoundError`` -- an adapter was asked to read a key it does not
  hold.  Absence is never an error for ``query()``.
- ``DecisionInvariantViolation`` -- an adapter contradicted its own
  ``query()`` result between decision and execution.
- ``AdapterError`` -- any other per-key failure that retrying will not fix.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all azsync errors."""

    #: Short machine-readable failure class used in reports.
    kind = "error"

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class TransientError(SyncError):
    """A failure that may succeed when retried."""

    kind = "transient"


class FatalError(SyncError):
    """A failure that prevents progress on every key."""

    kind = "fatal"


class AdapterError(SyncError):
    """A non-retryable failure confined to a single key."""

    kind = "error"


class ItemNotFoundError(AdapterError):
    """The requested key does not exist on this side."""

    kind = "not_found"


class DecisionInvariantViolation(SyncError):
    """An adapter reported state inconsistent with its earlier query."""

    kind = "invariant"
