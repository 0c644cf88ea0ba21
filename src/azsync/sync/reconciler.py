"""Timestamp-based decision logic for the sync engine.

``decide()`` is a pure function of the two side states and the sync mode.
It never performs I/O and never looks at values: freshness is judged by
modification timestamps alone.

Decision table (local / remote):

=================  =====  =====  =====  ===========
state              auto   push   pull   pull-always
=================  =====  =====  =====  ===========
absent / absent    noop   noop   noop   noop
absent / present   pull   noop   pull   pull
present / absent   push   push   noop   noop
tL == tR           noop   noop   noop   noop
tL >  tR           push   push   noop   pull
tL <  tR           pull   push   pull   pull
=================  =====  =====  =====  ===========

Equal timestamps are a no-op in every mode.  This is what makes the
executor's re-stamping of the destination load-bearing: a pair that has
just been synchronised compares equal on the next run.
"""

from __future__ import annotations

from datetime import datetime
from typing import cast

from azsync.sync.models import (
    Decision,
    Reconciliation,
    SideState,
    SyncMode,
)

# ---------------------------------------------------------------------------
# Skip reasons
# ---------------------------------------------------------------------------

REASON_NOT_FOUND = "not found"
REASON_UNCHANGED = "unchanged"
REASON_PUSH_DISABLED = "push disabled"
REASON_PULL_DISABLED = "pull disabled"
REASON_NOTHING_TO_PULL = "nothing to pull"
REASON_LOCAL_NEWER = "local newer"
REASON_REMOTE_NEWER = "remote newer"
REASON_LOCAL_ONLY = "local only"
REASON_REMOTE_ONLY = "remote only"
REASON_LOCAL_WINS = "local wins"
REASON_REMOTE_WINS = "remote wins"


def _push(local: SideState, reason: str) -> Reconciliation:
    return Reconciliation(
        decision=Decision.PUSH,
        reason=reason,
        source_modified=local.modified,
    )


def _pull(remote: SideState, reason: str) -> Reconciliation:
    return Reconciliation(
        decision=Decision.PULL,
        reason=reason,
        source_modified=remote.modified,
    )


def _noop(reason: str) -> Reconciliation:
    return Reconciliation(decision=Decision.NOOP, reason=reason)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reconcile(
    local: SideState, remote: SideState, mode: SyncMode
) -> Reconciliation:
    """Decide what to do for one key and explain why.

    Args:
        local: State of the key in the local store.
        remote: State of the key in the remote store.
        mode: The sync mode for the run.

    Returns:
        A ``Reconciliation`` carrying the decision, a short reason, and the
        source timestamp the destination must be stamped with.
    """
    if not local.present and not remote.present:
        return _noop(REASON_NOT_FOUND)

    if not local.present:
        if mode == SyncMode.PUSH:
            return _noop(REASON_PUSH_DISABLED)
        return _pull(remote, REASON_REMOTE_ONLY)

    if not remote.present:
        if mode == SyncMode.PULL:
            return _noop(REASON_PULL_DISABLED)
        if mode == SyncMode.PULL_ALWAYS:
            return _noop(REASON_NOTHING_TO_PULL)
        return _push(local, REASON_LOCAL_ONLY)

    # Present states always carry a timestamp
    local_time = cast(datetime, local.modified)
    remote_time = cast(datetime, remote.modified)

    if local_time == remote_time:
        return _noop(REASON_UNCHANGED)

    local_newer = local_time > remote_time

    if mode == SyncMode.PUSH:
        return _push(
            local, REASON_LOCAL_NEWER if local_newer else REASON_LOCAL_WINS
        )

    if mode == SyncMode.PULL_ALWAYS:
        return _pull(
            remote,
            REASON_REMOTE_WINS if local_newer else REASON_REMOTE_NEWER,
        )

    if mode == SyncMode.PULL:
        if local_newer:
            return _noop(REASON_PUSH_DISABLED)
        return _pull(remote, REASON_REMOTE_NEWER)

    # auto: whichever side is strictly newer wins
    if local_newer:
        return _push(local, REASON_LOCAL_NEWER)
    return _pull(remote, REASON_REMOTE_NEWER)


def decide(
    local: SideState, remote: SideState, mode: SyncMode
) -> Decision:
    """Return the decision for one key (see the module decision table)."""
    return reconcile(local, remote, mode).decision


def overwrites_newer(
    local: SideState, remote: SideState, decision: Decision
) -> bool:
    """Return ``True`` if executing *decision* replaces a strictly newer value."""
    if not (local.present and remote.present):
        return False
    local_time = cast(datetime, local.modified)
    remote_time = cast(datetime, remote.modified)
    if decision == Decision.PUSH:
        return remote_time > local_time
    if decision == Decision.PULL:
        return local_time > remote_time
    return False
