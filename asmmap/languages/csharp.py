"""Lexical C# namespace extraction."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# `namespace Foo.Bar` and file-scoped `namespace Foo.Bar;`. Purely lexical:
# matches inside comments and strings are counted as declarations too.
_NAMESPACE_RE = re.compile(r"namespace\s+([\w.]+)")


def expand_prefixes(namespace: str) -> list[str]:
    """Return every dotted prefix of a namespace, shortest first.

    ``"A.B.C"`` -> ``["A", "A.B", "A.B.C"]``.
    """
    parts = [p for p in namespace.split(".") if p]
    return [".".join(parts[: i + 1]) for i in range(len(parts))]


def extract_namespaces(text: str) -> set[str]:
    """Return all namespaces declared in C# source text, with their prefixes."""
    result: set[str] = set()
    for match in _NAMESPACE_RE.finditer(text):
        result.update(expand_prefixes(match.group(1)))
    return result


def read_namespaces(file_path: str) -> set[str]:
    """Read a source file and extract its namespaces.

    Unreadable or undecodable files are logged and contribute nothing.
    """
    try:
        with open(file_path, "r", encoding="utf-8-sig") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read {file_path}: {e}")
        return set()

    return extract_namespaces(text)
