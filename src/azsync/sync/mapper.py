"""Blob name mapper for file synchronisation.

Translates local file paths into blob names using a name template.  The
template is split on ``#``; every second part is a placeholder:

- ``#name#`` -- file name (``config.json``)
- ``#stem#`` -- file name without extension (``config``)
- ``#ext#``  -- extension without the dot (``json``)

``backups/#stem#.#ext#`` therefore maps ``./config.json`` to
``backups/config.json``.  A literal ``#`` cannot be expressed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

DEFAULT_BLOB_NAME = "#name#"


class BlobNameMapper:
    """Map local file paths to blob names.

    Args:
        template: Blob name template (see module docstring).

    Raises:
        ValueError: If the template has an odd number of ``#``.
    """

    def __init__(self, template: str = DEFAULT_BLOB_NAME) -> None:
        parts = template.split("#")
        if len(parts) % 2 == 0:
            raise ValueError("Blob name is malformed (invalid number of #s)")
        self._template = template
        self._parts = parts

    @property
    def template(self) -> str:
        return self._template

    def blob_name(self, path: Path) -> str:
        """Format the blob name for one local path.

        Raises:
            ValueError: For an unknown placeholder, or ``#ext#`` on a file
                without an extension.
        """
        if not path.name:
            raise ValueError(f"Expected path to file: {path}")

        result: list[str] = []
        for index, part in enumerate(self._parts):
            if index % 2 == 0:
                result.append(part)
            elif part == "name":
                result.append(path.name)
            elif part == "stem":
                result.append(path.stem)
            elif part == "ext":
                if not path.suffix:
                    raise ValueError(f"No file extension: {path}")
                result.append(path.suffix[1:])
            else:
                raise ValueError(f"Invalid placeholder: {part!r}")
        return "".join(result)

    def map_paths(self, paths: Iterable[Path]) -> dict[str, Path]:
        """Map every path to its blob name.

        Paths are de-duplicated first (existing files by their resolved
        path) so overlapping shell globs are harmless.

        Returns:
            Mapping of blob name to local path, in input order.

        Raises:
            ValueError: If two different files map to the same blob name.
        """
        unique: dict[Path, None] = {}
        for path in paths:
            unique[path.resolve() if path.exists() else path] = None

        mapping: dict[str, Path] = {}
        duplicates: list[str] = []
        for path in unique:
            name = self.blob_name(path)
            if name in mapping:
                if name not in duplicates:
                    duplicates.append(name)
            else:
                mapping[name] = path

        if duplicates:
            raise ValueError(f"Duplicate blob names: {', '.join(duplicates)}")
        return mapping
