"""Local side adapter for individual files.

Keys are blob names; each maps to one local path (see
``azsync.sync.mapper.BlobNameMapper``).  The file's mtime is its timestamp,
and writes set the mtime explicitly with ``os.utime`` so a pulled file
reports the remote's timestamp rather than the time of the download.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Mapping

from azsync.adapters.base import (
    DEFAULT_CHUNK_SIZE,
    ContentStream,
    Payload,
    as_stream,
)
from azsync.errors import AdapterError, ItemNotFoundError
from azsync.sync.models import SideState

logger = logging.getLogger(__name__)


class LocalFileAdapter:
    """Stream files to and from local paths.

    Args:
        paths: Mapping of key (blob name) to local file path.
        chunk_size: Read size used when streaming a file out.
    """

    name = "local"

    def __init__(
        self,
        paths: Mapping[str, Path],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._paths = dict(paths)
        self._chunk_size = chunk_size

    def path_for(self, key: str) -> Path:
        """Return the local path mapped to *key*."""
        try:
            return self._paths[key]
        except KeyError:
            raise AdapterError(
                f"{key}: no local path mapped to this key", key=key
            ) from None

    # ------------------------------------------------------------------
    # Capability contract
    # ------------------------------------------------------------------

    def query(self, key: str) -> SideState:
        path = self.path_for(key)
        try:
            st = path.stat()
        except FileNotFoundError:
            return SideState.absent()
        except OSError as exc:
            raise AdapterError(f"{key}: cannot stat {path}: {exc}", key=key) from exc

        if stat.S_ISDIR(st.st_mode):
            raise AdapterError(
                f"{key}: {path} is a directory; archive it first", key=key
            )
        return SideState.at(st.st_mtime, handle=str(path))

    def read(self, key: str) -> ContentStream:
        path = self.path_for(key)
        try:
            fh = open(path, "rb")
        except FileNotFoundError:
            raise ItemNotFoundError(f"{key}: {path} not found", key=key) from None
        except OSError as exc:
            raise AdapterError(f"{key}: cannot open {path}: {exc}", key=key) from exc

        length = os.fstat(fh.fileno()).st_size
        chunk_size = self._chunk_size
        return ContentStream(
            iter(lambda: fh.read(chunk_size), b""),
            length,
            on_close=fh.close,
        )

    def write(self, key: str, payload: Payload, modified: datetime) -> None:
        """Write *payload* atomically, then set the file's mtime to *modified*."""
        path = self.path_for(key)
        stream = as_stream(payload)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                for chunk in stream:
                    fh.write(chunk)
            os.replace(tmp_path, path)
        except BaseException as exc:
            stream.close()
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise AdapterError(
                    f"{key}: cannot write {path}: {exc}", key=key
                ) from exc
            raise

        ts = modified.timestamp()
        os.utime(path, (ts, ts))
        logger.debug("Wrote %s (stamped %s)", path, modified)

    def list_keys(self) -> list[str]:
        return list(self._paths)
