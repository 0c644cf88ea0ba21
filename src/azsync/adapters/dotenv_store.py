"""Local side adapter for a dotenv file.

Keys are variable names.  Values are parsed with python-dotenv (variable
expansion included) and written back in place with ``dotenv.set_key``, so
comments, ordering and untouched variables survive a pull.

Per-key timestamps come from the ``TimestampLedger``.  A variable reports
the timestamp it was stamped with for as long as its value is unchanged.
A variable seen without a valid stamp is pinned to the file's mtime at
that moment, so rewriting the file for one variable never moves the
timestamps of the others.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path

from dotenv import dotenv_values, set_key

from azsync.adapters.base import Payload, as_text
from azsync.errors import AdapterError, ItemNotFoundError
from azsync.sync.models import SideState, normalize_timestamp
from azsync.sync.state import TimestampLedger

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIRNAME = ".azsync"


class LocalDotenvAdapter:
    """Read and write variables of one dotenv file.

    Args:
        path: The dotenv file.  It need not exist yet.
        ledger: Timestamp ledger store; defaults to ``.azsync/`` beside
            the dotenv file.
    """

    name = "local"

    def __init__(
        self, path: Path, ledger: TimestampLedger | None = None
    ) -> None:
        self.path = path
        self.ledger_store = ledger or TimestampLedger(
            path.parent / DEFAULT_STATE_DIRNAME
        )
        self._ledger_name = path.name.lstrip(".") or "dotenv"
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Capability contract
    # ------------------------------------------------------------------

    def query(self, key: str) -> SideState:
        with self._lock:
            value = self._values().get(key)
            if value is None:
                return SideState.absent()

            ledger = self.ledger_store.load(self._ledger_name)
            stamped = self.ledger_store.stamped_time(ledger, key, value)
            if stamped is None:
                # Pin the file time so later writes to other variables
                # do not make this one look newer.
                stamped = normalize_timestamp(self._mtime())
                self.ledger_store.record(ledger, key, value, stamped)
                self._save_ledger(ledger)
            return SideState.at(stamped, handle=str(self.path))

    def read(self, key: str) -> str:
        with self._lock:
            value = self._values().get(key)
        if value is None:
            raise ItemNotFoundError(
                f"{key}: not defined in {self.path}", key=key
            )
        return value

    def write(self, key: str, payload: Payload, modified: datetime) -> None:
        text = as_text(payload)
        with self._lock:
            ledger = self.ledger_store.load(self._ledger_name)
            self._pin_unstamped(ledger, exclude=key)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch(exist_ok=True)
                set_key(str(self.path), key, text, quote_mode="always")
            except OSError as exc:
                raise AdapterError(
                    f"{key}: cannot write {self.path}: {exc}", key=key
                ) from exc

            # Stamp the value as python-dotenv will read it back so the
            # digest check in query() matches.
            stored = self._values().get(key)
            if stored is None:
                raise AdapterError(
                    f"{key}: value not readable after writing {self.path}",
                    key=key,
                )
            self.ledger_store.record(ledger, key, stored, modified)
            self._save_ledger(ledger)
        logger.debug("Wrote %s to %s (stamped %s)", key, self.path, modified)

    def list_keys(self) -> list[str]:
        with self._lock:
            return [k for k, v in self._values().items() if v is not None]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _pin_unstamped(self, ledger: dict, exclude: str) -> None:
        """Record the current file time for every variable without a stamp.

        Called before the file is rewritten, while its mtime still
        describes the variables it holds.
        """
        values = self._values()
        if not values:
            return
        file_time = normalize_timestamp(self._mtime())
        for name, value in values.items():
            if name == exclude or value is None:
                continue
            if self.ledger_store.stamped_time(ledger, name, value) is None:
                self.ledger_store.record(ledger, name, value, file_time)

    def _save_ledger(self, ledger: dict) -> None:
        try:
            self.ledger_store.save(self._ledger_name, ledger)
        except OSError as exc:
            raise AdapterError(
                f"cannot save timestamps for {self.path}: {exc}"
            ) from exc

    def _values(self) -> dict[str, str | None]:
        if not self.path.exists():
            return {}
        try:
            return dict(dotenv_values(self.path))
        except OSError as exc:
            raise AdapterError(f"cannot read {self.path}: {exc}") from exc

    def _mtime(self) -> float:
        return self.path.stat().st_mtime
