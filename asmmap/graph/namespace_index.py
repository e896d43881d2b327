"""Namespace-to-assembly ownership index."""

from __future__ import annotations

from asmmap.config import NamespaceRecord, OwnershipOrigin
from asmmap.unity.manifest import normalise_path


class NamespaceIndex:
    """Maps each namespace string to the single assembly that owns it.

    Conflicting observations are settled by ``register``:
    project-local code shadows a vendored package, otherwise the assembly
    with the longer name wins, and on a full tie the first observation stays.
    Entries are only ever added or replaced, never removed by a scan.
    """

    def __init__(self, mappings: dict[str, NamespaceRecord] | None = None) -> None:
        self.mappings: dict[str, NamespaceRecord] = dict(mappings or {})

    def __len__(self) -> int:
        return len(self.mappings)

    def __contains__(self, namespace: str) -> bool:
        return namespace in self.mappings

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NamespaceIndex):
            return NotImplemented
        return self.mappings == other.mappings

    def register(
        self,
        namespace: str,
        assembly_name: str,
        manifest_path: str,
        origin: OwnershipOrigin,
    ) -> bool:
        """Record that an assembly declares a namespace.

        Returns True when the stored record for the namespace changed.
        """
        if not namespace:
            return False

        record = NamespaceRecord(
            assembly_name=assembly_name,
            manifest_path=normalise_path(manifest_path),
            origin=origin,
        )

        existing = self.mappings.get(namespace)
        if existing is None:
            self.mappings[namespace] = record
            return True

        if existing.origin == OwnershipOrigin.VENDORED and origin == OwnershipOrigin.PROJECT_LOCAL:
            self.mappings[namespace] = record
            return True

        if len(assembly_name) > len(existing.assembly_name):
            self.mappings[namespace] = record
            return True

        return False

    def get(self, namespace: str) -> NamespaceRecord | None:
        return self.mappings.get(namespace)

    def resolve(self, namespace: str) -> NamespaceRecord | None:
        """Find the owner of a namespace.

        Tries an exact match first, then the longest registered prefix on a
        dot boundary (``Foo.Bar.Baz`` falls back to ``Foo.Bar``, then ``Foo``).
        """
        parts = namespace.split(".")
        while parts:
            record = self.mappings.get(".".join(parts))
            if record is not None:
                return record
            parts.pop()
        return None

    def items(self) -> list[tuple[str, NamespaceRecord]]:
        """All mappings sorted by namespace."""
        return sorted(self.mappings.items())

    def filter(self, text: str | None) -> list[tuple[str, NamespaceRecord]]:
        """Mappings whose namespace or assembly name contains text (case-insensitive)."""
        if not text:
            return self.items()
        needle = text.lower()
        return [
            (ns, record) for ns, record in self.items()
            if needle in ns.lower() or needle in record.assembly_name.lower()
        ]

    def normalise_paths(self) -> None:
        for record in self.mappings.values():
            record.manifest_path = normalise_path(record.manifest_path)

    def clear(self) -> None:
        self.mappings.clear()

    def as_dict(self) -> dict[str, dict[str, str]]:
        """Persisted form of the mappings, in insertion order."""
        return {ns: record.to_dict() for ns, record in self.mappings.items()}
