"""Core sync engine that runs one reconciliation pass over a set of keys.

The ``SyncEngine`` ties together the adapters, reconciler, executor and
aggregator.  For every key it:

1. Queries the local side, then the remote side.
2. Reconciles the two states under the run's ``SyncMode``.
3. Executes the decision (unless this is a dry run).
4. Records the outcome in the aggregator.

Keys are independent and are processed concurrently, at most
``max_parallel`` at a time.  Within one key the steps above run strictly in
order on a worker thread; adapters are blocking.

Error handling is per key: a failing key never stops the others.  Only a
``FatalError`` (authentication, configuration) aborts the run, since no key
could make progress.

Cancellation is cooperative.  ``cancel()`` stops new keys from starting and
keys that have not yet executed their transfer from doing so; transfers in
flight complete.  Keys that never finished are reported as ``Canceled``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Iterable

from azsync.core.async_utils import make_semaphore, run_sync
from azsync.errors import FatalError, SyncError
from azsync.sync.aggregator import ResultAggregator
from azsync.sync.enumerator import explicit_keys
from azsync.sync.executor import Executor, call_with_retries
from azsync.sync.models import (
    SyncOutcome,
    SyncReport,
    SyncSettings,
    SyncStatus,
)
from azsync.sync.reconciler import reconcile

if TYPE_CHECKING:
    from azsync.adapters.base import SideAdapter

logger = logging.getLogger(__name__)


class SyncEngine:
    """Synchronise keys between a local and a remote adapter.

    Args:
        local: Local side adapter.
        remote: Remote side adapter.
        settings: Run configuration; defaults to ``SyncSettings()``.
    """

    def __init__(
        self,
        local: SideAdapter,
        remote: SideAdapter,
        settings: SyncSettings | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.settings = settings or SyncSettings()
        self.executor = Executor(local, remote, self.settings)
        self._cancel_event = threading.Event()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cooperative cancellation of the current run.

        Safe to call from a signal handler or another thread.
        """
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested; finishing in-flight keys")
        self._cancel_event.set()

    @property
    def canceled(self) -> bool:
        return self._cancel_event.is_set()

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    def run(self, keys: Iterable[str], dry_run: bool = False) -> SyncReport:
        """Run the engine to completion from synchronous code.

        See ``run_async``.
        """
        return asyncio.run(self.run_async(keys, dry_run=dry_run))

    async def run_async(
        self, keys: Iterable[str], dry_run: bool = False
    ) -> SyncReport:
        """Synchronise *keys* and report one outcome per key.

        Args:
            keys: Keys to synchronise.  Duplicates are ignored.
            dry_run: If ``True``, compute decisions but do not execute them.

        Returns:
            A ``SyncReport`` with outcomes in key order.

        Raises:
            FatalError: If any adapter reports an unrecoverable failure.
                Remaining keys are canceled before the error propagates.
        """
        keys = explicit_keys(keys)
        aggregator = ResultAggregator(keys, self.settings.mode, dry_run)
        semaphore = make_semaphore(self.settings.max_parallel)
        logger.info(
            "Synchronising %d key(s) in %s mode%s",
            len(keys),
            self.settings.mode.value,
            " (dry run)" if dry_run else "",
        )

        tasks = [
            asyncio.create_task(
                self._run_key(key, semaphore, aggregator, dry_run),
                name=f"sync:{key}",
            )
            for key in keys
        ]
        if tasks:
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
            errors = [
                task.exception()
                for task in done
                if not task.cancelled() and task.exception() is not None
            ]
            if errors:
                self._cancel_event.set()
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                raise errors[0]

        report = aggregator.finalize()
        counts = report.counts()
        logger.info(
            "Sync finished: %d applied, %d skipped, %d failed, %d canceled",
            counts["applied"],
            counts["skipped"],
            counts["failed"],
            counts["canceled"],
        )
        return report

    # ------------------------------------------------------------------
    # Per-key pipeline
    # ------------------------------------------------------------------

    async def _run_key(
        self,
        key: str,
        semaphore: asyncio.Semaphore,
        aggregator: ResultAggregator,
        dry_run: bool,
    ) -> None:
        async with semaphore:
            if self._cancel_event.is_set():
                logger.debug("%s: canceled before start", key)
                return
            try:
                outcome = await run_sync(self.sync_key, key, dry_run)
            except FatalError:
                raise
            except Exception as exc:
                logger.error("Error syncing %s: %s", key, exc)
                outcome = SyncOutcome(
                    key=key,
                    status=SyncStatus.FAILED,
                    error=str(exc),
                    error_kind=getattr(exc, "kind", "error"),
                )
        if outcome is not None:
            aggregator.record(outcome)

    def sync_key(self, key: str, dry_run: bool = False) -> SyncOutcome | None:
        """Query, reconcile and (unless *dry_run*) execute one key.

        Blocking; runs on a worker thread.

        Returns:
            The key's outcome, or ``None`` if the run was canceled before
            the key's transfer started.

        Raises:
            FatalError: Propagated from the adapters.
        """
        try:
            local_state = call_with_retries(
                self.settings, self.local.query, key
            )
            remote_state = call_with_retries(
                self.settings, self.remote.query, key
            )
        except FatalError:
            raise
        except SyncError as exc:
            logger.error("%s: query failed: %s", key, exc)
            return SyncOutcome(
                key=key,
                status=SyncStatus.FAILED,
                error=str(exc),
                error_kind=exc.kind,
            )

        reconciliation = reconcile(
            local_state, remote_state, self.settings.mode
        )
        logger.debug(
            "%s: local=%s remote=%s -> %s (%s)",
            key,
            local_state.modified,
            remote_state.modified,
            reconciliation.decision.value,
            reconciliation.reason,
        )

        if dry_run:
            return SyncOutcome(
                key=key,
                decision=reconciliation.decision,
                status=SyncStatus.SKIPPED,
                reason=reconciliation.reason,
            )

        if self._cancel_event.is_set():
            logger.debug("%s: canceled before transfer", key)
            return None

        return self.executor.execute(
            key, reconciliation, local_state, remote_state
        )
