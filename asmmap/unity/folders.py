"""Ordered list of root folders to scan for assembly definitions."""

from __future__ import annotations

import logging
import os

from asmmap.unity.manifest import normalise_path

logger = logging.getLogger(__name__)


class RootFolders:
    """De-duplicated, ordered root folder list.

    Folders inside the project are kept project-relative (``Assets/...``,
    ``Packages/...``); anything else is stored as given, with forward slashes.
    """

    def __init__(self, project_dir: str = ".", vendored_root: str = "Packages",
                 skip_package_prefix: str = "com.unity.") -> None:
        self.project_dir = project_dir
        self.vendored_root = vendored_root
        self.skip_package_prefix = skip_package_prefix
        self._folders: list[str] = []

    def __iter__(self):
        return iter(self._folders)

    def __len__(self) -> int:
        return len(self._folders)

    def __contains__(self, path: str) -> bool:
        return self._canonical(path) in self._folders

    def to_list(self) -> list[str]:
        return list(self._folders)

    def _canonical(self, path: str) -> str:
        path = normalise_path(path).rstrip("/") or "/"
        while path.startswith("./"):
            path = path[2:]
        if os.path.isabs(path):
            project = normalise_path(os.path.abspath(self.project_dir)).rstrip("/")
            if path == project:
                return "."
            if path.startswith(project + "/"):
                return path[len(project) + 1:]
        return path

    def add(self, path: str) -> bool:
        """Add a folder. Returns False when it is already present."""
        folder = self._canonical(path)
        if folder in self._folders:
            return False
        self._folders.append(folder)
        return True

    def remove(self, path: str) -> bool:
        folder = self._canonical(path)
        if folder not in self._folders:
            return False
        self._folders.remove(folder)
        return True

    def add_all_packages(self) -> int:
        """Add every embedded package folder except the built-in Unity ones.

        Returns the number of folders added.
        """
        packages_dir = os.path.join(self.project_dir, self.vendored_root)
        if not os.path.isdir(packages_dir):
            logger.debug(f"No {self.vendored_root} folder under {self.project_dir}")
            return 0

        added = 0
        for name in sorted(os.listdir(packages_dir)):
            if not os.path.isdir(os.path.join(packages_dir, name)):
                continue
            if name.startswith(self.skip_package_prefix):
                continue
            if self.add(f"{self.vendored_root}/{name}"):
                added += 1
        return added
