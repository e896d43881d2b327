"""JSON persistence for the namespace index."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from asmmap.config import NamespaceRecord
from asmmap.graph.namespace_index import NamespaceIndex

logger = logging.getLogger(__name__)


class IndexLoadError(Exception):
    """Raised when a persisted index file exists but cannot be understood."""


def dumps(index: NamespaceIndex) -> str:
    """Serialise an index to the persisted JSON text."""
    return json.dumps({"mappings": index.as_dict()}, indent=2, ensure_ascii=False)


def loads(text: str) -> NamespaceIndex:
    """Parse persisted JSON text into an index.

    A ``null`` document or missing ``mappings`` is an empty index. Anything
    else that does not match the schema raises IndexLoadError.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise IndexLoadError(f"Invalid JSON: {e}") from e

    if data is None:
        return NamespaceIndex()
    if not isinstance(data, dict):
        raise IndexLoadError("Index root must be an object")

    raw = data.get("mappings")
    if raw is None:
        return NamespaceIndex()
    if not isinstance(raw, dict):
        raise IndexLoadError("'mappings' must be an object")

    mappings: dict[str, NamespaceRecord] = {}
    for namespace, entry in raw.items():
        try:
            mappings[namespace] = NamespaceRecord.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            raise IndexLoadError(f"Malformed record for '{namespace}': {e}") from e

    return NamespaceIndex(mappings)


def write_index(index: NamespaceIndex, output_path: str) -> None:
    """Write an index to a JSON file, creating parent directories.

    The text goes to a temporary file next to the target which then replaces
    it, so an interrupted write never leaves a truncated index behind.
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(dumps(index), encoding="utf-8")
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class IndexStore:
    """Loads and saves the index at its default location."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def load(self) -> NamespaceIndex:
        if not self.path.exists():
            logger.debug(f"No index at {self.path}; starting empty")
            return NamespaceIndex()

        try:
            text = self.path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise IndexLoadError(f"Cannot read {self.path}: {e}") from e

        try:
            return loads(text)
        except IndexLoadError as e:
            raise IndexLoadError(f"{self.path}: {e}") from e

    def save(self, index: NamespaceIndex) -> None:
        write_index(index, str(self.path))
        logger.debug(f"Saved {len(index)} namespaces to {self.path}")

    def export(self, dest: str, index: NamespaceIndex) -> None:
        """Write the index to an arbitrary path in the same format."""
        write_index(index, dest)
        logger.info(f"Exported {len(index)} namespaces to {dest}")
