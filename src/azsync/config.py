"""Run configuration for the azsync CLI.

Reads sync settings and Azure endpoints from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    AZSYNC_MODE: Sync mode (optional, default: auto)
    AZSYNC_MAX_PARALLEL: Max keys processed concurrently (optional, default: 8)
    AZSYNC_RETRY_ATTEMPTS: Attempts per call on transient errors (optional, default: 4)
    AZSYNC_RETRY_BASE_DELAY: Initial backoff delay in seconds (optional, default: 0.5)
    AZSYNC_DEBUG: Enable debug logging (optional, default: false)
    KEY_VAULT_URL: Key Vault endpoint (required by ``azsync dotenv``)
    STORAGE_ACCOUNT_URL: Blob endpoint (required by ``azsync file``)
    AZSYNC_CONTAINER: Blob container (required by ``azsync file``)

Endpoint and container values may be ``env:VAR`` references (see
``azsync.env_ref``).

YAML config files are read from ``AZSYNC_CONFIG``, ``.azsync/config.yml``
(or ``.yaml``) in the working directory and ``~/.config/azsync/config.yml``.
A project file replaces whole top-level sections of the global one.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .env_ref import resolve_url, resolve_value
from .sync.models import SyncMode, SyncSettings

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AZSYNC_CONFIG"

# ${VAR} or ${VAR:-default}
_PLACEHOLDER = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


@dataclass
class Config:
    mode: str = "auto"
    max_parallel: int = 8
    retry_attempts: int = 4
    retry_base_delay: float = 0.5
    key_vault_url: str | None = None
    storage_account_url: str | None = None
    container_name: str | None = None
    debug: bool = False
    warn_on_overwrite: bool = True

    def to_settings(self) -> SyncSettings:
        """Build the engine's explicit run settings."""
        return SyncSettings(
            mode=self.mode,
            max_parallel=self.max_parallel,
            retry_attempts=self.retry_attempts,
            retry_base_delay=self.retry_base_delay,
            warn_on_overwrite=self.warn_on_overwrite,
        )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Normalises the mode name and strips trailing slashes from endpoints.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a value is out of range or an endpoint is malformed.
    """
    config.mode = SyncMode.parse(config.mode).value

    if not (1 <= config.max_parallel <= 64):
        raise ValueError(
            f"Invalid max_parallel '{config.max_parallel}': must be a number between 1 and 64"
        )
    if not (1 <= config.retry_attempts <= 10):
        raise ValueError(
            f"Invalid retry_attempts '{config.retry_attempts}': must be a number between 1 and 10"
        )
    if config.retry_base_delay < 0:
        raise ValueError(
            f"Invalid retry_base_delay '{config.retry_base_delay}': must not be negative"
        )

    if config.key_vault_url:
        config.key_vault_url = resolve_url(config.key_vault_url).removesuffix("/")
    if config.storage_account_url:
        config.storage_account_url = resolve_url(
            config.storage_account_url
        ).removesuffix("/")
    if config.container_name is not None:
        config.container_name = config.container_name.strip()
        if not config.container_name:
            raise ValueError("Container name cannot be empty.")


def require(config: Config, field: str, hint: str) -> str:
    """Return a required endpoint setting or raise a helpful ValueError.

    Args:
        config: Loaded configuration.
        field: Attribute name, e.g. ``"key_vault_url"``.
        hint: How to supply the value, appended to the error message.
    """
    value = getattr(config, field)
    if not value:
        label = field.replace("_", " ")
        raise ValueError(f"{label.capitalize()} not found. {hint}")
    return value


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, kind: type, low: float, high: float):
    """Parse a numeric env var, or return None if unset."""
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = kind(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def expand_placeholders(value: str) -> str:
    """Substitute ``${VAR}`` and ``${VAR:-default}`` from the environment.

    An unset or empty variable yields its default, or ``""`` without one.
    """
    return _PLACEHOLDER.sub(
        lambda m: os.environ.get(m.group(1)) or m.group(2) or "", value
    )


def _expand(node: Any) -> Any:
    if isinstance(node, str):
        return expand_placeholders(node)
    if isinstance(node, dict):
        return {key: _expand(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


def config_file_paths() -> list[Path]:
    """Return the YAML config files that exist, most specific first.

    Raises:
        ValueError: If ``AZSYNC_CONFIG`` names a file that does not exist.
    """
    paths: list[Path] = []

    explicit = os.getenv(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser().resolve()
        if not path.is_file():
            raise ValueError(f"{CONFIG_ENV_VAR} points to a missing file: {path}")
        paths.append(path)

    project = Path.cwd() / ".azsync"
    for candidate in (
        project / "config.yml",
        project / "config.yaml",
        Path.home() / ".config" / "azsync" / "config.yml",
    ):
        if candidate.is_file():
            paths.append(candidate)
    return paths


def read_config_files() -> dict[str, Any]:
    """Merge every discovered config file into one raw mapping.

    Files are applied from least to most specific; a top-level section
    from a more specific file replaces the whole section.  Placeholders
    are expanded after the merge.  No files gives ``{}``.

    Raises:
        ValueError: If a file is not valid YAML or its root is not a mapping.
    """
    merged: dict[str, Any] = {}
    for path in reversed(config_file_paths()):
        logger.debug("Reading config file %s", path)
        try:
            with path.open(encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid config file {path}: {exc}") from exc

        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid config file {path}: expected a mapping, "
                f"got {type(data).__name__}"
            )
        merged.update(data)

    return _expand(merged)


def load_config(
    mode: str | None = None,
    max_parallel: int | None = None,
    key_vault_url: str | None = None,
    storage_account_url: str | None = None,
    container_name: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    dotenv: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        mode: Override sync mode.
        max_parallel: Override concurrency limit.
        key_vault_url: Override Key Vault endpoint (may be ``env:VAR``).
        storage_account_url: Override blob endpoint (may be ``env:VAR``).
        container_name: Override container (may be ``env:VAR``).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file
            (see ``config_schema.yaml_fallbacks``).
        dotenv: Variables of the dotenv file, searched first when
            resolving ``env:VAR`` references.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is invalid or a reference cannot be resolved.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_mode = mode or os.getenv("AZSYNC_MODE") or fb.get("mode") or "auto"
    final_vault = key_vault_url or os.getenv("KEY_VAULT_URL") or fb.get("key_vault_url")
    final_storage = (
        storage_account_url
        or os.getenv("STORAGE_ACCOUNT_URL")
        or fb.get("storage_account_url")
    )
    final_container = (
        container_name or os.getenv("AZSYNC_CONTAINER") or fb.get("container_name")
    )

    # References resolve against the dotenv file before the environment
    if dotenv is not None:
        if final_vault:
            final_vault = resolve_value(final_vault, dotenv)
        if final_storage:
            final_storage = resolve_value(final_storage, dotenv)
    if final_container:
        final_container = resolve_value(final_container, dotenv)

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("AZSYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    env_warn = _get_bool_env("AZSYNC_WARN_ON_OVERWRITE")
    final_warn = (
        env_warn
        if env_warn is not None
        else bool(fb.get("warn_on_overwrite", True))
    )

    # --- Numeric fields: CLI > env > YAML > default ---

    if max_parallel is not None:
        final_max_parallel = max_parallel
    else:
        env_parallel = _get_number_env("AZSYNC_MAX_PARALLEL", int, 1, 64)
        if env_parallel is not None:
            final_max_parallel = env_parallel
        else:
            final_max_parallel = int(fb.get("max_parallel", 8))

    env_attempts = _get_number_env("AZSYNC_RETRY_ATTEMPTS", int, 1, 10)
    if env_attempts is not None:
        final_attempts = env_attempts
    else:
        final_attempts = int(fb.get("retry_attempts", 4))

    env_delay = _get_number_env("AZSYNC_RETRY_BASE_DELAY", float, 0, 60)
    if env_delay is not None:
        final_delay = env_delay
    else:
        final_delay = float(fb.get("retry_base_delay", 0.5))

    config = Config(
        mode=final_mode,
        max_parallel=final_max_parallel,
        retry_attempts=final_attempts,
        retry_base_delay=final_delay,
        key_vault_url=final_vault,
        storage_account_url=final_storage,
        container_name=final_container,
        debug=final_debug,
        warn_on_overwrite=final_warn,
    )

    validate_config(config)

    logger.debug("Loaded config: %s", config)
    return config
