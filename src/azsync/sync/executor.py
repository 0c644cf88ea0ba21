"""Carry out a reconciled decision for one key.

A transfer reads the source side and writes the destination side, stamping
the destination with the source timestamp captured at decision time (never
a fresh query) so a change racing the run cannot be stamped as synced.

Transient failures are retried with exponential backoff and full jitter.
The retry covers the whole transfer: a partly consumed content stream
cannot be replayed, so each attempt re-reads the source.

Failure mapping:

- ``TransientError`` after the last attempt -> ``Failed`` (``transient``).
- ``ItemNotFoundError`` from the source read -> ``Failed`` (``invariant``):
  the source reported the key present moments earlier.
- Any other ``SyncError`` -> ``Failed`` with the error's kind.
- ``FatalError`` propagates and aborts the run.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, TypeVar

import backoff

from azsync.errors import (
    DecisionInvariantViolation,
    FatalError,
    ItemNotFoundError,
    SyncError,
    TransientError,
)
from azsync.sync.models import (
    Decision,
    Reconciliation,
    SideState,
    SyncOutcome,
    SyncSettings,
    SyncStatus,
)
from azsync.sync.reconciler import overwrites_newer

if TYPE_CHECKING:
    from azsync.adapters.base import SideAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _backoff_handler(details: dict[str, Any]) -> None:
    """Log each retry of a transient failure."""
    exception = details["exception"]
    logger.warning(
        "Retrying %s in %.1fs (attempt %d): %s",
        getattr(details["target"], "__name__", "call"),
        details["wait"],
        details["tries"],
        exception,
    )


def call_with_retries(
    settings: SyncSettings, func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Call *func*, retrying ``TransientError`` per *settings*.

    The last ``TransientError`` is re-raised once ``retry_attempts`` calls
    have failed.  Other exceptions are raised immediately.
    """
    retrying = backoff.on_exception(
        backoff.expo,
        TransientError,
        max_tries=settings.retry_attempts,
        on_backoff=_backoff_handler,
        jitter=backoff.full_jitter,
        factor=settings.retry_base_delay,
        max_value=settings.retry_max_delay,
        logger=None,
    )(func)
    return retrying(*args, **kwargs)


class Executor:
    """Apply decisions between one local and one remote adapter.

    Args:
        local: Local side adapter.
        remote: Remote side adapter.
        settings: Retry and warning settings for the run.
    """

    def __init__(
        self,
        local: SideAdapter,
        remote: SideAdapter,
        settings: SyncSettings,
    ) -> None:
        self.local = local
        self.remote = remote
        self.settings = settings

    def execute(
        self,
        key: str,
        reconciliation: Reconciliation,
        local_state: SideState,
        remote_state: SideState,
    ) -> SyncOutcome:
        """Execute *reconciliation* for *key* and return its outcome.

        Raises:
            FatalError: If an adapter reports an unrecoverable failure.
        """
        decision = reconciliation.decision
        if decision == Decision.NOOP:
            return SyncOutcome(
                key=key,
                decision=decision,
                status=SyncStatus.SKIPPED,
                reason=reconciliation.reason,
            )

        if decision == Decision.PUSH:
            source, destination = self.local, self.remote
            if self.settings.warn_on_overwrite and overwrites_newer(
                local_state, remote_state, decision
            ):
                logger.warning(
                    "%s: overwriting newer %s value (%s) with %s value (%s)",
                    key,
                    self.remote.name,
                    remote_state.modified,
                    self.local.name,
                    local_state.modified,
                )
        else:
            source, destination = self.remote, self.local

        try:
            call_with_retries(
                self.settings,
                self._transfer,
                key,
                source,
                destination,
                reconciliation.source_modified,
            )
        except FatalError:
            raise
        except SyncError as exc:
            logger.error("%s: %s failed: %s", key, decision.value, exc)
            return SyncOutcome(
                key=key,
                decision=decision,
                status=SyncStatus.FAILED,
                reason=reconciliation.reason,
                error=str(exc),
                error_kind=exc.kind,
            )

        logger.info(
            "%s: %s (%s)", key, decision.value, reconciliation.reason
        )
        return SyncOutcome(
            key=key,
            decision=decision,
            status=SyncStatus.APPLIED,
            reason=reconciliation.reason,
        )

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def _transfer(
        self,
        key: str,
        source: SideAdapter,
        destination: SideAdapter,
        modified: datetime | None,
    ) -> None:
        if modified is None:
            raise DecisionInvariantViolation(
                f"{key}: no source timestamp to stamp {destination.name} with",
                key=key,
            )
        try:
            payload = source.read(key)
        except ItemNotFoundError as exc:
            raise DecisionInvariantViolation(
                f"{key}: {source.name} reported the key present but "
                f"reading it failed: {exc}",
                key=key,
            ) from exc
        destination.write(key, payload, modified)
