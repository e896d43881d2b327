"""Manifest and source file discovery."""

from __future__ import annotations

import fnmatch
import logging
import os

from asmmap.unity.manifest import normalise_path

logger = logging.getLogger(__name__)


def resolve_path(project_dir: str, path: str) -> str:
    """Filesystem location of a stored (project-relative or absolute) path."""
    if os.path.isabs(path):
        return path
    return os.path.join(project_dir, path)


def _display_path(project_dir: str, full_path: str) -> str:
    """Project-relative path when inside the project, absolute otherwise."""
    project = os.path.abspath(project_dir)
    full = os.path.abspath(full_path)
    try:
        rel = os.path.relpath(full, project)
    except ValueError:
        # Different drive on Windows
        return normalise_path(full)
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return normalise_path(full)
    return normalise_path(rel)


def _walk_matching(directory: str, pattern: str) -> list[str]:
    """Recursively collect files matching pattern, in lexicographic walk order."""
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(dirnames)
        for filename in sorted(filenames):
            if fnmatch.fnmatch(filename, pattern):
                found.append(os.path.join(dirpath, filename))
    return found


def find_manifests(
    project_dir: str, roots: list[str], pattern: str = "*.asmdef",
) -> list[str]:
    """Find every manifest under each root folder.

    Roots are visited in the order given; roots that do not exist are
    skipped. A manifest reachable through overlapping roots is listed once.
    """
    manifests: list[str] = []
    seen: set[str] = set()

    for root in roots:
        directory = resolve_path(project_dir, root)
        if not os.path.isdir(directory):
            logger.debug(f"Skipping missing root folder {root}")
            continue

        for full_path in _walk_matching(directory, pattern):
            path = _display_path(project_dir, full_path)
            if path in seen:
                continue
            seen.add(path)
            manifests.append(path)

    return manifests


def find_sources(
    project_dir: str, manifest_path: str, pattern: str = "*.cs",
) -> list[str]:
    """Find every source file beneath a manifest's directory.

    Nested assemblies are not excluded: their sources are also listed for
    the outer manifest.
    """
    directory = os.path.dirname(resolve_path(project_dir, manifest_path)) or "."
    if not os.path.isdir(directory):
        return []
    return [_display_path(project_dir, p) for p in _walk_matching(directory, pattern)]
