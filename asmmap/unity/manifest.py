"""Parse Unity .asmdef files (JSON) and classify where they live."""

from __future__ import annotations

import json
import os

from asmmap.config import AssemblyManifest, OwnershipOrigin


class ManifestError(Exception):
    """Raised when a manifest cannot be read or is not valid JSON."""


def normalise_path(path: str) -> str:
    """Convert backslash separators to forward slashes."""
    return path.replace("\\", "/")


def parse_manifest(manifest_path: str, fs_path: str | None = None) -> AssemblyManifest:
    """Parse an assembly definition file and return its manifest.

    Only the ``name`` field is read; everything else in the file is ignored.
    A missing or non-string name yields a manifest with an empty name, which
    callers treat as "skip this assembly".

    Args:
        manifest_path: Path recorded on the manifest (project-relative form).
        fs_path: Where to read the file from, if different from manifest_path.
    """
    manifest = AssemblyManifest(path=normalise_path(manifest_path))

    try:
        with open(fs_path or manifest_path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(f"{manifest_path}: {e}") from e

    if isinstance(data, dict):
        name = data.get("name")
        if isinstance(name, str):
            manifest.name = name.strip()

    return manifest


def classify_origin(manifest_path: str, vendored_root: str = "Packages") -> OwnershipOrigin:
    """Decide whether a manifest is vendored or project-local from its path root.

    Project-relative paths under ``Packages/`` are vendored. Absolute paths
    point outside the project, into an external dependency tree, and are
    vendored too. Everything else (``Assets/...``) is project code.
    """
    path = normalise_path(manifest_path)
    if path.startswith(f"{vendored_root}/"):
        return OwnershipOrigin.VENDORED
    if os.path.isabs(path) or path.startswith("/"):
        return OwnershipOrigin.VENDORED
    return OwnershipOrigin.PROJECT_LOCAL
