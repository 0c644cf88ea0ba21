"""Unified configuration schema for azsync.

Defines Pydantic models for the YAML config structure with dedicated
sections for sync behaviour, Key Vault, Blob Storage and logging, plus the
adapter that flattens it into fallbacks for ``config.load_config()``.

Usage:
    from azsync.config_schema import build_config, yaml_fallbacks

    raw = read_config_files()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))

Example ``.azsync/config.yml``::

    sync:
      mode: pull
      max_parallel: 4
    key_vault:
      url: ${KEY_VAULT_URL}
    storage:
      account_url: https://myaccount.blob.core.windows.net
      container: configs
    logging:
      level: DEBUG
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from .sync.models import SyncMode

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SyncSectionConfig(BaseModel):
    """Sync behaviour settings."""

    mode: str = Field(default="auto", description="Sync mode")
    max_parallel: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum keys processed concurrently (1-64)",
    )
    retry_attempts: int = Field(
        default=4,
        ge=1,
        le=10,
        description="Attempts per adapter call on transient errors (1-10)",
    )
    retry_base_delay: float = Field(
        default=0.5, ge=0, description="Initial backoff delay in seconds"
    )
    warn_on_overwrite: bool = Field(
        default=True,
        description="Warn when push overwrites a newer remote value",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}

    @field_validator("mode")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        return SyncMode.parse(value).value


class KeyVaultConfig(BaseModel):
    """Key Vault connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="Key Vault URL")

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Blob Storage connection settings."""

    account_url: str | None = Field(
        default=None, description="Storage account blob endpoint"
    )
    container: str | None = Field(
        default=None, description="Blob container name"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    sync: SyncSectionConfig = Field(default_factory=SyncSectionConfig)
    key_vault: KeyVaultConfig = Field(default_factory=KeyVaultConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``config.read_config_files()``.

    Handles missing sections gracefully - anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config() fallbacks
# ---------------------------------------------------------------------------


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten a ``UnifiedConfig`` into the fallback dict ``load_config``
    expects.

    Unset endpoint values are omitted so they do not shadow defaults.

    Args:
        unified: The unified config produced by ``build_config()``.

    Returns:
        Dict keyed by ``Config`` field names.
    """
    fallbacks = unified.sync.model_dump()
    endpoints = {
        "key_vault_url": unified.key_vault.url,
        "storage_account_url": unified.storage.account_url,
        "container_name": unified.storage.container,
    }
    fallbacks.update({k: v for k, v in endpoints.items() if v})
    return fallbacks
