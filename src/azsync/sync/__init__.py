"""Timestamp-driven synchronisation engine.

Public API for synchronising keys between a local store (a dotenv file or
local files) and a remote store (Key Vault secrets or Azure blobs).

Architecture
------------
Freshness is decided from modification timestamps alone; values are never
compared.  After a transfer the destination is stamped with the source's
timestamp, so the next run sees both sides as equal and does nothing.

Modules:

- ``engine``     -- ``SyncEngine``: bounded, cancellable run over all keys.
- ``reconciler`` -- ``reconcile``/``decide``: the pure decision table.
- ``executor``   -- ``Executor``: applies a decision with retries.
- ``aggregator`` -- ``ResultAggregator``: one outcome slot per key.
- ``enumerator`` -- key set strategies (explicit, template, union).
- ``mapper``     -- ``BlobNameMapper``: local path to blob name.
- ``state``      -- ``TimestampLedger``: per-key stamps for dotenv files.
- ``models``     -- ``SideState``, ``SyncOutcome``, ``SyncReport``...
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from azsync.adapters import KeyVaultAdapter, LocalDotenvAdapter
    from azsync.core.credentials import default_credential
    from azsync.sync import (
        SyncEngine,
        SyncSettings,
        format_plan,
        format_sync_report,
        template_keys,
    )

    engine = SyncEngine(
        local=LocalDotenvAdapter(Path(".env")),
        remote=KeyVaultAdapter(
            "https://myvault.vault.azure.net", default_credential()
        ),
        settings=SyncSettings(mode="auto", max_parallel=8),
    )
    keys = template_keys(Path(".env.example"), Path(".env"))

    # Dry-run first to preview changes
    print(format_plan(engine.run(keys, dry_run=True)))

    # Execute the sync
    report = engine.run(keys)
    print(format_sync_report(report))
"""

from .aggregator import ResultAggregator
from .engine import SyncEngine
from .enumerator import explicit_keys, template_keys, union_keys
from .executor import Executor
from .mapper import BlobNameMapper
from .models import (
    Decision,
    Reconciliation,
    SideState,
    SyncMode,
    SyncOutcome,
    SyncReport,
    SyncSettings,
    SyncStatus,
)
from .reconciler import decide, reconcile
from .reporter import format_plan, format_sync_report, report_to_json
from .state import TimestampLedger

__all__ = [
    "BlobNameMapper",
    "Decision",
    "Executor",
    "Reconciliation",
    "ResultAggregator",
    "SideState",
    "SyncEngine",
    "SyncMode",
    "SyncOutcome",
    "SyncReport",
    "SyncSettings",
    "SyncStatus",
    "TimestampLedger",
    "decide",
    "explicit_keys",
    "format_plan",
    "format_sync_report",
    "reconcile",
    "report_to_json",
    "template_keys",
    "union_keys",
]
