"""Azure credentials for the Key Vault and Blob Storage clients.

``default_credential()`` returns azure-identity's ``DefaultAzureCredential``.
It tries, in order: a service principal from the environment
(``AZURE_TENANT_ID``, ``AZURE_CLIENT_ID`` plus a secret or certificate),
workload identity, managed identity, then the developer sign-ins of the
Azure CLI, Azure PowerShell and the Azure Developer CLI.

The credential is lazy: a missing sign-in surfaces on the first request as
a ``ClientAuthenticationError``, which the client layer reports as a
``FatalError``.
"""

from __future__ import annotations

import logging

from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential

logger = logging.getLogger(__name__)


def default_credential() -> TokenCredential:
    """Return the credential chain used by the azsync commands.

    Interactive browser sign-in is excluded so that a missing login fails
    fast instead of blocking an unattended run.
    """
    logger.debug("Using DefaultAzureCredential")
    return DefaultAzureCredential(exclude_interactive_browser_credential=True)
