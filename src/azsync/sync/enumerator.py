"""Strategies producing the set of keys a run synchronises.

All strategies return a deterministic, duplicate-free list.  The listing
strategy takes the union of both sides so a key held by only one side is
never dropped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from dotenv import dotenv_values

if TYPE_CHECKING:
    from azsync.adapters.base import SideAdapter

logger = logging.getLogger(__name__)


def explicit_keys(keys: Iterable[str]) -> list[str]:
    """Return *keys* with duplicates removed, keeping first-seen order."""
    return list(dict.fromkeys(keys))


def template_keys(
    template_path: Path | None,
    dotenv_path: Path | None = None,
    no_template: bool = False,
) -> list[str]:
    """Return the variable names listed in a dotenv template.

    When the template is disabled or missing, the variable names of the
    dotenv file itself are used instead.

    Args:
        template_path: Example file listing the variables to sync
            (e.g. ``.env.example``).  Values are ignored.
        dotenv_path: The local dotenv file, used as a fallback.
        no_template: Skip the template and use *dotenv_path* directly.

    Raises:
        ValueError: If neither file exists.
    """
    candidates = []
    if not no_template and template_path is not None:
        candidates.append(template_path)
    if dotenv_path is not None:
        candidates.append(dotenv_path)

    for path in candidates:
        if path.is_file():
            logger.debug("Reading variable names from %s", path)
            return explicit_keys(dotenv_values(path).keys())
        logger.debug("%s not found", path)

    raise ValueError("Cannot synchronize without a dotenv or dotenv template file")


def union_keys(local: SideAdapter, remote: SideAdapter) -> list[str]:
    """Return every key held by either side, sorted."""
    return sorted(set(local.list_keys()) | set(remote.list_keys()))
