"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_plan`` -- the decided action per key (dry-run preview).
- ``format_sync_report`` -- full post-sync summary.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from .models import Decision

if TYPE_CHECKING:
    from .models import SyncOutcome, SyncReport

# ------------------------------------------------------------------
# Plan
# ------------------------------------------------------------------

_DISPLAY_ORDER = {Decision.PUSH: 0, Decision.PULL: 1, Decision.NOOP: 2}


def format_action(
    outcome: SyncOutcome, location: str | None = None
) -> str:
    """Format one decided action, e.g. ``<- PUSH: API_KEY``.

    Args:
        outcome: The (usually dry-run) outcome of one key.
        location: Local counterpart of the key, shown for file syncs.
    """
    key = outcome.key
    if outcome.decision == Decision.PUSH:
        return f"<- PUSH: {key}" + (f" <- {location}" if location else "")
    if outcome.decision == Decision.PULL:
        return f"-> PULL: {key}" + (f" -> {location}" if location else "")
    reason = outcome.reason or outcome.error or outcome.status.value
    line = f"   SKIP: {key} ({reason})"
    return line + (f" -- {location}" if location else "")


def format_plan(
    report: SyncReport, locations: Mapping[str, str] | None = None
) -> str:
    """Format the decided actions, pushes first, then pulls, then skips.

    Args:
        report: A dry-run sync report.
        locations: Optional key -> local path mapping for file syncs.

    Returns:
        Multi-line formatted string.
    """
    locations = locations or {}
    lines = ["Actions:"]
    ordered = sorted(
        report.outcomes,
        key=lambda o: (_DISPLAY_ORDER[o.decision], o.key),
    )
    for outcome in ordered:
        lines.append(format_action(outcome, locations.get(outcome.key)))
    if not report.pending:
        lines.append("")
        lines.append("No changes needed.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one outcome.
    Skipped keys are summarised by count only to avoid excessive output.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report ({report.mode.value})"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Synced {len(report.outcomes)} keys: "
        f"{len(report.pushed)} pushed, {len(report.pulled)} pulled, "
        f"{len(report.failed)} failed"
    )
    lines.append("")

    if report.pushed:
        lines.append("Pushed:")
        for o in report.pushed:
            lines.append(f"  {o.key} ({o.reason})")
        lines.append("")

    if report.pulled:
        lines.append("Pulled:")
        for o in report.pulled:
            lines.append(f"  {o.key} ({o.reason})")
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        for o in report.failed:
            lines.append(f"  {o.key} [{o.error_kind}]: {o.error}")
        lines.append("")

    if report.skipped:
        lines.append(f"Skipped: {len(report.skipped)} keys")
        lines.append("")

    if report.canceled:
        lines.append(f"Canceled: {len(report.canceled)} keys")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-outcome details.
    """
    outcomes = []
    for o in report.outcomes:
        entry: dict = {
            "key": o.key,
            "decision": o.decision.value,
            "status": o.status.value,
        }
        if o.reason:
            entry["reason"] = o.reason
        if o.error:
            entry["error"] = o.error
            entry["error_kind"] = o.error_kind
        outcomes.append(entry)

    counts = report.counts()
    counts["pushed"] = len(report.pushed)
    counts["pulled"] = len(report.pulled)
    counts["pending"] = len(report.pending)

    return {
        "mode": report.mode.value,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": counts,
        "outcomes": outcomes,
    }
