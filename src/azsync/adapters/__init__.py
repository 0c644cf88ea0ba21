"""Side adapters: the local and remote stores a sync run moves data between."""

from azsync.adapters.base import ContentStream, Payload, SideAdapter
from azsync.adapters.blob_storage import BlobStorageAdapter
from azsync.adapters.dotenv_store import LocalDotenvAdapter
from azsync.adapters.key_vault import KeyVaultAdapter
from azsync.adapters.local_files import LocalFileAdapter

__all__ = [
    "BlobStorageAdapter",
    "ContentStream",
    "KeyVaultAdapter",
    "LocalDotenvAdapter",
    "LocalFileAdapter",
    "Payload",
    "SideAdapter",
]
