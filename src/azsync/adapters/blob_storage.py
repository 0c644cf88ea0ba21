"""Remote side adapter for Azure Blob Storage.

Keys are blob names within one container.  Blob content is streamed in both
directions; nothing is buffered beyond one chunk.

Each upload stores its timestamp in the ``modified`` blob metadata entry
(RFC 3339) because the service sets ``Last-Modified`` to the upload time.
Blobs uploaded by other tools fall back to ``Last-Modified``.

Reads and writes are conditional on the ETag seen by ``query()``: a blob
changed (or created) by someone else between decision and execution fails
with HTTP 412/409 instead of being copied or overwritten.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Iterator

from azure.core import MatchConditions
from azure.core.credentials import TokenCredential
from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import (
    BlobClient,
    BlobProperties,
    ContainerClient,
    ContentSettings,
    StorageStreamDownloader,
)

from azsync.adapters.base import (
    DEFAULT_CHUNK_SIZE,
    ContentStream,
    Payload,
    as_stream,
)
from azsync.adapters.key_vault import parse_timestamp
from azsync.core.client import azure_errors, make_container_client
from azsync.errors import AdapterError
from azsync.sync.models import SideState
from azsync.validators import validate_blob_name

logger = logging.getLogger(__name__)

MODIFIED_METADATA = "modified"

_UNKNOWN = object()


class BlobStorageAdapter:
    """Stream blobs of one container.

    Args:
        account_url: Storage account blob endpoint, e.g.
            ``https://myaccount.blob.core.windows.net``.
        container: Container name.
        credential: Azure credential; see ``default_credential()``.
        client: Pre-built ``ContainerClient`` (tests inject one).
        chunk_size: Download chunk size.
    """

    name = "remote"

    def __init__(
        self,
        account_url: str,
        container: str,
        credential: TokenCredential | None = None,
        client: ContainerClient | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if client is None:
            if credential is None:
                raise ValueError("Either credential or client is required")
            client = make_container_client(
                account_url, container, credential, chunk_size
            )
        self.client = client
        self.container = container
        # ETag seen by the last query() per key; None records absence.
        self._etags: dict[str, str | None] = {}
        self._etags_lock = threading.Lock()

    def blob_client(self, key: str) -> BlobClient:
        """Return the client for blob *key*.

        Raises:
            AdapterError: If *key* is not a legal blob name.
        """
        valid, message = validate_blob_name(key)
        if not valid:
            raise AdapterError(f"{key}: {message}", key=key)
        return self.client.get_blob_client(key)

    # ------------------------------------------------------------------
    # Capability contract
    # ------------------------------------------------------------------

    def query(self, key: str) -> SideState:
        blob = self.blob_client(key)
        with azure_errors(key):
            try:
                props = blob.get_blob_properties()
            except ResourceNotFoundError:
                self._remember(key, None)
                return SideState.absent()

        self._remember(key, props.etag)
        return SideState.at(self._modified(key, props), handle=props.etag)

    def read(self, key: str) -> ContentStream:
        blob = self.blob_client(key)
        etag = self._recorded(key)
        options: dict[str, Any] = {}
        if isinstance(etag, str):
            options = {"etag": etag, "match_condition": MatchConditions.IfNotModified}

        with azure_errors(key):
            downloader = blob.download_blob(**options)
        return ContentStream(self._iter_chunks(key, downloader), downloader.size)

    def write(self, key: str, payload: Payload, modified: datetime) -> None:
        blob = self.blob_client(key)
        stream = as_stream(payload)
        options: dict[str, Any] = {
            "metadata": {
                MODIFIED_METADATA: modified.astimezone(timezone.utc).isoformat()
            },
            "content_settings": ContentSettings(
                content_type="application/octet-stream"
            ),
            "overwrite": True,
        }
        etag = self._recorded(key)
        if etag is None:
            # Sends If-None-Match: *
            options["overwrite"] = False
        elif etag is not _UNKNOWN:
            options["etag"] = etag
            options["match_condition"] = MatchConditions.IfNotModified

        length = len(stream)
        try:
            with azure_errors(key):
                blob.upload_blob(
                    stream if length else b"", length=length, **options
                )
        finally:
            stream.close()
        # The blob has a new ETag now; a later write must query again.
        with self._etags_lock:
            self._etags.pop(key, None)
        logger.debug("Uploaded %s/%s (%d bytes)", self.container, key, length)

    def list_keys(self) -> list[str]:
        with azure_errors():
            return [blob.name for blob in self.client.list_blobs()]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _remember(self, key: str, etag: str | None) -> None:
        with self._etags_lock:
            self._etags[key] = etag

    def _recorded(self, key: str) -> object:
        with self._etags_lock:
            return self._etags.get(key, _UNKNOWN)

    @staticmethod
    def _modified(key: str, props: BlobProperties) -> datetime:
        stamp = (props.metadata or {}).get(MODIFIED_METADATA)
        if stamp:
            try:
                return parse_timestamp(stamp)
            except ValueError:
                logger.warning(
                    "%s: ignoring malformed %s metadata %r",
                    key,
                    MODIFIED_METADATA,
                    stamp,
                )
        if props.last_modified is None:
            raise AdapterError(f"{key}: blob has no modification time", key=key)
        return props.last_modified

    @staticmethod
    def _iter_chunks(
        key: str, downloader: StorageStreamDownloader
    ) -> Iterator[bytes]:
        with azure_errors(key):
            yield from downloader.chunks()
