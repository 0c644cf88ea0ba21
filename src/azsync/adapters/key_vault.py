"""Remote side adapter for Azure Key Vault secrets.

Keys are dotenv variable names.  Secret names may not contain ``_``, so a
variable ``DB_PASSWORD`` is stored as the secret ``DB-PASSWORD``.

Each secret version is tagged with ``modified`` (RFC 3339) when azsync
writes it.  ``query()`` reports that tag so a pulled value and the secret it
came from carry identical timestamps; secrets created outside azsync fall
back to the version's ``updated_on`` attribute.

``read()`` fetches the version that ``query()`` based its timestamp on, so
a version added in between is never pulled under the older timestamp.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ResourceNotFoundError
from azure.keyvault.secrets import SecretClient, SecretProperties

from azsync.adapters.base import Payload, as_text
from azsync.core.client import azure_errors, make_secret_client
from azsync.errors import AdapterError, ItemNotFoundError
from azsync.sync.models import SideState
from azsync.validators import validate_secret_name

logger = logging.getLogger(__name__)

MODIFIED_TAG = "modified"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def secret_name_for(key: str) -> str:
    """Map a variable name onto a Key Vault secret name."""
    return key.replace("_", "-")


def key_for(secret_name: str) -> str:
    """Map a Key Vault secret name back onto a variable name."""
    return secret_name.replace("-", "_")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as written into the ``modified`` tag."""
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


class KeyVaultAdapter:
    """Read and write secrets of one Key Vault.

    Args:
        vault_url: Vault endpoint, e.g. ``https://myvault.vault.azure.net``.
        credential: Azure credential; see ``default_credential()``.
        client: Pre-built ``SecretClient`` (tests inject one).
    """

    name = "remote"

    def __init__(
        self,
        vault_url: str,
        credential: TokenCredential | None = None,
        client: SecretClient | None = None,
    ) -> None:
        if client is None:
            if credential is None:
                raise ValueError("Either credential or client is required")
            client = make_secret_client(vault_url, credential)
        self.client = client
        self.vault_url = vault_url
        # Version id seen by the last query() per key.
        self._versions: dict[str, str] = {}
        self._versions_lock = threading.Lock()

    def secret_name(self, key: str) -> str:
        """Return the validated secret name for *key*.

        Raises:
            AdapterError: If the name is not a legal secret name.
        """
        name = secret_name_for(key)
        valid, message = validate_secret_name(name)
        if not valid:
            raise AdapterError(f"{key}: {message}", key=key)
        return name

    # ------------------------------------------------------------------
    # Capability contract
    # ------------------------------------------------------------------

    def query(self, key: str) -> SideState:
        name = self.secret_name(key)
        with azure_errors(key):
            try:
                versions = list(self.client.list_properties_of_secret_versions(name))
            except ResourceNotFoundError:
                versions = []

        latest = max(
            versions, key=lambda v: v.created_on or _EPOCH, default=None
        )
        if latest is None or latest.enabled is False:
            if latest is not None:
                # Disabled secrets cannot be read; treat them like deleted ones.
                logger.debug("%s: latest version is disabled", name)
            self._forget(key)
            return SideState.absent()

        if latest.version:
            with self._versions_lock:
                self._versions[key] = latest.version
        return SideState.at(self._modified(latest), handle=latest.version)

    def read(self, key: str) -> str:
        name = self.secret_name(key)
        with self._versions_lock:
            version = self._versions.get(key)
        with azure_errors(key):
            secret = self.client.get_secret(name, version=version)
        if secret.value is None:
            raise ItemNotFoundError(f"{key}: secret {name} has no value", key=key)
        return secret.value

    def write(self, key: str, payload: Payload, modified: datetime) -> None:
        name = self.secret_name(key)
        stamp = modified.astimezone(timezone.utc).isoformat()
        with azure_errors(key):
            self.client.set_secret(
                name,
                as_text(payload),
                content_type="text/plain",
                tags={MODIFIED_TAG: stamp},
            )
        # The write created a newer version than the one queried.
        self._forget(key)
        logger.debug("Set secret %s (stamped %s)", name, stamp)

    def list_keys(self) -> list[str]:
        with azure_errors():
            return [
                key_for(props.name)
                for props in self.client.list_properties_of_secrets()
                if props.name and props.enabled is not False
            ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _forget(self, key: str) -> None:
        with self._versions_lock:
            self._versions.pop(key, None)

    @staticmethod
    def _modified(props: SecretProperties) -> datetime:
        tag = (props.tags or {}).get(MODIFIED_TAG)
        if tag:
            try:
                return parse_timestamp(tag)
            except ValueError:
                logger.warning(
                    "Ignoring malformed %s tag on %s: %r",
                    MODIFIED_TAG,
                    props.id,
                    tag,
                )
        stamp = props.updated_on or props.created_on
        if stamp is None:
            raise AdapterError(f"Secret version {props.id} has no timestamp")
        return stamp
