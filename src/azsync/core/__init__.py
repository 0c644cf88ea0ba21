"""Shared plumbing: Azure SDK clients, credentials and async bridging."""

from .async_utils import run_sync
from .client import azure_errors, translate_error

__all__ = ["azure_errors", "run_sync", "translate_error"]
