"""
Resolution of ``env:`` references in option values.

Endpoint and container options may name an environment variable instead of
a literal value, so the value can live in the dotenv file next to the
variables being synchronised::

    --key-vault-url env:KEY_VAULT_URL
    --storage-account-url env://STORAGE_ACCOUNT_URL
    --container-name env:CONTAINER

A referenced variable is looked up in the dotenv file first, then in the
process environment.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping
from urllib.parse import urlparse

from dotenv import dotenv_values

_URL_SCHEMES = ("http", "https")


def read_dotenv(path: Path | None) -> dict[str, str]:
    """Return the defined variables of *path*, or ``{}`` if it is missing."""
    if path is None or not path.is_file():
        return {}
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def reference_name(value: str) -> str | None:
    """Return the variable named by an ``env:`` reference, else ``None``.

    Raises:
        ValueError: If the reference names no variable.
    """
    if not value.startswith("env:"):
        return None
    name = value[len("env:"):]
    if name.startswith("//"):
        name = name[2:]
    name = name.rstrip("/")
    if not name:
        raise ValueError(
            f"Missing variable name in '{value}' (format: env:VAR_NAME)"
        )
    return name


def resolve_value(
    value: str,
    dotenv: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve *value* if it is an ``env:`` reference, else return it.

    Args:
        value: Literal value or reference.
        dotenv: Variables of the dotenv file, searched first.
        environ: Process environment; defaults to ``os.environ``.

    Raises:
        ValueError: If the referenced variable is not defined anywhere.
    """
    name = reference_name(value)
    if name is None:
        return value

    if environ is None:
        environ = os.environ
    resolved = (dotenv or {}).get(name)
    if resolved is None:
        resolved = environ.get(name)
    if resolved is None:
        raise ValueError(f"'{name}' not found in environment")
    return resolved


def resolve_url(
    value: str,
    dotenv: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve an endpoint option to an ``http(s)`` URL.

    Raises:
        ValueError: On an unresolvable reference or an unsupported scheme.
    """
    url = resolve_value(value.strip(), dotenv, environ).strip()
    parsed = urlparse(url)
    if parsed.scheme not in _URL_SCHEMES:
        raise ValueError(f"Unsupported scheme: '{parsed.scheme}' in '{url}'")
    if not parsed.hostname:
        raise ValueError(f"Invalid URL '{url}': URL must include a hostname")
    return url
