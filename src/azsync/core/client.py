"""Azure SDK client construction and error translation.

The Key Vault and Blob Storage adapters talk to Azure through the vendor
SDKs.  This module builds their clients with one shared configuration and
maps ``azure.core.exceptions`` onto the azsync error taxonomy, so nothing
above the adapters ever sees an SDK exception.

SDK-level retries are disabled: the executor's backoff policy owns retries.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from azure.core.credentials import TokenCredential
from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.keyvault.secrets import SecretClient
from azure.storage.blob import ContainerClient

from ..errors import (
    AdapterError,
    FatalError,
    ItemNotFoundError,
    SyncError,
    TransientError,
)

logger = logging.getLogger(__name__)

# Statuses worth retrying: timeouts, throttling, server faults.
_TRANSIENT_STATUSES = {408, 429}
_AUTH_STATUSES = {401, 403}


def make_secret_client(vault_url: str, credential: TokenCredential) -> SecretClient:
    """Return a ``SecretClient`` for *vault_url*."""
    logger.debug("Creating Key Vault client for %s", vault_url)
    return SecretClient(vault_url=vault_url, credential=credential, retry_total=0)


def make_container_client(
    account_url: str,
    container: str,
    credential: TokenCredential,
    chunk_size: int,
) -> ContainerClient:
    """Return a ``ContainerClient`` that downloads in *chunk_size* pieces."""
    logger.debug("Creating Blob Storage client for %s/%s", account_url, container)
    return ContainerClient(
        account_url,
        container,
        credential=credential,
        retry_total=0,
        max_single_get_size=chunk_size,
        max_chunk_get_size=chunk_size,
    )


def _describe(exc: AzureError) -> str:
    """Return a one-line description of an SDK error."""
    status = getattr(exc, "status_code", None)
    code = getattr(exc, "error_code", None) or getattr(
        getattr(exc, "error", None), "code", None
    )
    lines = (getattr(exc, "message", None) or str(exc) or "").strip().splitlines()
    # Storage messages end with "RequestId:..." / "Time:..." lines
    message = lines[0] if lines else type(exc).__name__

    parts = []
    if status:
        parts.append(f"HTTP {status}")
    if code:
        parts.append(f"({code})")
    if message and message != code:
        parts.append(message)
    return " ".join(parts)


def translate_error(exc: AzureError, key: str | None = None) -> SyncError:
    """Map an SDK exception onto the azsync error taxonomy.

    Returns:
        ``FatalError`` for authentication and authorization failures,
        ``TransientError`` for network failures, timeouts, throttling and
        5xx, ``ItemNotFoundError`` for 404, and ``AdapterError`` for
        everything else, including 409/412 precondition failures (the
        remote changed after the decision was made).
    """
    detail = _describe(exc)
    message = f"{key}: {detail}" if key else detail

    if isinstance(exc, ClientAuthenticationError):
        return FatalError(f"Access denied -- {message}", key=key)
    if isinstance(exc, (ServiceRequestError, ServiceResponseError)):
        return TransientError(message, key=key)
    if isinstance(exc, ResourceNotFoundError):
        return ItemNotFoundError(message, key=key)
    if isinstance(exc, HttpResponseError):
        status = exc.status_code or 0
        if status in _AUTH_STATUSES:
            return FatalError(f"Access denied -- {message}", key=key)
        if status == 404:
            return ItemNotFoundError(message, key=key)
        if status in _TRANSIENT_STATUSES or status >= 500:
            return TransientError(message, key=key)
    return AdapterError(message, key=key)


@contextmanager
def azure_errors(key: str | None = None) -> Iterator[None]:
    """Re-raise SDK exceptions inside the block as azsync errors."""
    try:
        yield
    except AzureError as exc:
        raise translate_error(exc, key) from exc
