"""Per-key timestamp ledger for local stores without per-key timestamps.

A dotenv file has a single modification time shared by all of its
variables, so it cannot natively remember *when* each variable was last
synchronised.  The ledger records, per key, the timestamp the value was
stamped with and a digest of the value as it was written.  The dotenv
adapter trusts a ledger timestamp only while the value's digest still
matches; an edited value falls back to the file's mtime.

The digest is compared against the ledger's own record of the same side
only.  Local and remote values are never compared.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Dict-based state** -- the ledger is a plain ``dict`` so the adapter can
  update it in place and persist after every write.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

LEDGER_VERSION = 1


class TimestampLedger:
    """Load, save, and query timestamp ledgers.

    Args:
        state_dir: Directory where ledger files are stored (typically
            ``.azsync/`` next to the dotenv file).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, name: str) -> dict:
        """Load the ledger called *name* from disk.

        Returns:
            The ledger dict.  If the file does not exist an empty ledger
            with ``version=1`` is returned.
        """
        path = self._ledger_path(name)
        if not path.exists():
            return {
                "version": LEDGER_VERSION,
                "updated": None,
                "source": name,
                "entries": {},
            }
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)

    def save(self, name: str, ledger: dict) -> None:
        """Persist *ledger* to disk atomically.

        Creates ``state_dir`` if it does not exist and refreshes the
        ``updated`` field before writing.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        ledger["updated"] = datetime.now(timezone.utc).isoformat()

        target = self._ledger_path(name)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(ledger, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Entry helpers
    # ------------------------------------------------------------------

    def get_entry(self, ledger: dict, key: str) -> dict | None:
        """Return the entry for *key*, or ``None`` if absent."""
        return ledger.get("entries", {}).get(key)

    def record(
        self, ledger: dict, key: str, value: str, modified: datetime
    ) -> None:
        """Upsert the stamp for *key*.  Mutates *ledger* in place."""
        ledger.setdefault("entries", {})[key] = {
            "modified": modified.astimezone(timezone.utc).isoformat(),
            "digest": self.content_hash(value),
        }

    def stamped_time(
        self, ledger: dict, key: str, value: str
    ) -> datetime | None:
        """Return the recorded timestamp if *value* is unchanged since stamping.

        Returns ``None`` when there is no entry or the value was edited.
        """
        entry = self.get_entry(ledger, key)
        if entry is None:
            return None
        if entry.get("digest") != self.content_hash(value):
            return None
        try:
            return datetime.fromisoformat(entry["modified"])
        except (KeyError, TypeError, ValueError):
            return None

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(value: str) -> str:
        """SHA-256 hex digest of *value* encoded as UTF-8."""
        return hashlib.sha256(value.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ledger_path(self, name: str) -> Path:
        """Return the path to the ledger file for *name*."""
        return self._state_dir / f"timestamps_{name}.json"
