"""Core data types and configuration for the assembly reference mapper."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

DEFAULT_INDEX_PATH = "Assets/VirtuaLabs/Resources/AssemblyNamespaceIndex.json"


class OwnershipOrigin(str, Enum):
    """Where a manifest lives. Values are the tags written to the index file."""
    VENDORED = "Packages"
    PROJECT_LOCAL = "Assets"


class ScanState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    ENUMERATING_MANIFESTS = "enumerating_manifests"
    ENUMERATING_SOURCES = "enumerating_sources"
    FINISHING = "finishing"


class ScanOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class AssemblyManifest:
    """Parsed .asmdef file. Only the name is consumed."""
    path: str
    name: str = ""


@dataclass
class NamespaceRecord:
    assembly_name: str
    manifest_path: str
    origin: OwnershipOrigin

    def to_dict(self) -> dict[str, str]:
        return {
            "assemblyName": self.assembly_name,
            "asmdefPath": self.manifest_path,
            "source": self.origin.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> NamespaceRecord:
        """Build a record from its persisted form.

        Raises KeyError, TypeError or ValueError on malformed input.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        assembly = data["assemblyName"]
        path = data["asmdefPath"]
        source = data["source"]
        for key, value in (("assemblyName", assembly), ("asmdefPath", path), ("source", source)):
            if not isinstance(value, str):
                raise TypeError(f"field '{key}' must be a string")
        return cls(
            assembly_name=assembly,
            manifest_path=path,
            origin=OwnershipOrigin(source),
        )


@dataclass
class SourceItem:
    """A queued source file tagged with the assembly that owns it."""
    path: str
    assembly_name: str
    origin: OwnershipOrigin
    manifest_path: str


@dataclass
class ScanProgress:
    state: ScanState = ScanState.IDLE
    total_manifests: int = 0
    processed_manifests: int = 0
    total_sources: int = 0
    processed_sources: int = 0
    current_manifest: str | None = None
    current_source: str | None = None

    @property
    def fraction(self) -> float:
        if self.total_sources == 0:
            return 0.0
        return self.processed_sources / self.total_sources

    def summary(self) -> str:
        return (
            f"Asmdefs: {self.processed_manifests}/{self.total_manifests}\n"
            f"Files: {self.processed_sources}/{self.total_sources}"
        )


@dataclass
class ScanResult:
    outcome: ScanOutcome
    progress: ScanProgress
    namespace_count: int
    index_path: str

    def summary(self) -> str:
        return f"Scan {self.outcome.value}. Total namespaces: {self.namespace_count}"


@dataclass
class ScanConfig:
    project_dir: str = "."
    roots: list[str] = field(default_factory=list)
    index_path: str = DEFAULT_INDEX_PATH
    manifest_pattern: str = "*.asmdef"
    source_pattern: str = "*.cs"
    vendored_root: str = "Packages"
    skip_package_prefix: str = "com.unity."

    def resolved_index_path(self) -> str:
        """Index location on disk; relative paths are taken from the project dir."""
        if os.path.isabs(self.index_path):
            return self.index_path
        return os.path.join(self.project_dir, self.index_path)
