"""Step-wise scan driver: manifests -> sources -> namespaces -> index."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from typing import Callable

from asmmap.config import (
    ScanConfig,
    ScanOutcome,
    ScanProgress,
    ScanResult,
    ScanState,
    SourceItem,
)
from asmmap.graph.namespace_index import NamespaceIndex
from asmmap.languages.csharp import read_namespaces
from asmmap.output import IndexStore
from asmmap.phases.locate import find_manifests, find_sources, resolve_path
from asmmap.unity.manifest import ManifestError, classify_origin, parse_manifest

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgress], None]


class ScanDriver:
    """Cooperative scan state machine.

    Each call to ``step`` does one bounded unit of work (locating manifests,
    one manifest, or one source file) so the caller's loop stays responsive
    and can cancel between steps. The index is shared with the caller and
    updated in place; a scan never removes entries.

    Args:
        config: Scan configuration.
        index: The index to refine. Usually the one loaded from the store.
        store: Where the index is persisted when a scan finishes.
        progress_callback: Optional callable(ScanProgress) invoked after
            every step.
    """

    def __init__(
        self,
        config: ScanConfig,
        index: NamespaceIndex,
        store: IndexStore,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.config = config
        self.index = index
        self.store = store
        self.progress_callback = progress_callback

        self.progress = ScanProgress()
        self.result: ScanResult | None = None
        self._roots: list[str] = []
        self._manifest_queue: deque[str] = deque()
        self._source_queue: deque[SourceItem] = deque()
        self._cancel_requested = False

    @property
    def state(self) -> ScanState:
        return self.progress.state

    @property
    def is_scanning(self) -> bool:
        return self.progress.state != ScanState.IDLE

    def start(self, roots: list[str] | None = None) -> bool:
        """Begin a scan. Returns False if one is running or there is nothing to scan."""
        if self.is_scanning:
            logger.debug("Scan already in progress; start ignored")
            return False

        roots = list(roots if roots is not None else self.config.roots)
        if not roots:
            logger.debug("No root folders configured; start ignored")
            return False

        self._roots = roots
        self._manifest_queue = deque()
        self._source_queue = deque()
        self._cancel_requested = False
        self.result = None
        self.progress = ScanProgress(state=ScanState.PREPARING)
        return True

    def cancel(self) -> None:
        """Request cancellation; honoured before the next step runs."""
        if self.is_scanning:
            self._cancel_requested = True

    def step(self) -> bool:
        """Advance the scan by one unit of work. Returns True while still scanning."""
        state = self.progress.state
        if state == ScanState.IDLE:
            return False

        if self._cancel_requested and state != ScanState.FINISHING:
            logger.info("Scan cancelled")
            self.progress.state = ScanState.FINISHING
            state = ScanState.FINISHING

        if state == ScanState.PREPARING:
            self._prepare()
        elif state == ScanState.ENUMERATING_MANIFESTS:
            self._process_next_manifest()
        elif state == ScanState.ENUMERATING_SOURCES:
            self._process_next_source()
        elif state == ScanState.FINISHING:
            self._finish()

        self._report()
        return self.is_scanning

    def run(self, roots: list[str] | None = None) -> ScanResult | None:
        """Run a whole scan in a plain loop.

        Ctrl-C cancels the scan; partial results are still persisted.
        Returns None if the scan could not be started.
        """
        if not self.start(roots):
            return None

        while True:
            try:
                if not self.step():
                    break
            except KeyboardInterrupt:
                self.cancel()

        return self.result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _prepare(self) -> None:
        manifests = find_manifests(
            self.config.project_dir, self._roots, self.config.manifest_pattern,
        )
        self._manifest_queue = deque(manifests)
        self.progress.total_manifests = len(manifests)
        logger.debug(f"Found {len(manifests)} manifests under {len(self._roots)} roots")

        self.progress.state = (
            ScanState.ENUMERATING_MANIFESTS if manifests else ScanState.FINISHING
        )

    def _process_next_manifest(self) -> None:
        if not self._manifest_queue:
            self.progress.state = ScanState.FINISHING
            return

        manifest_path = self._manifest_queue.popleft()
        self.progress.current_manifest = manifest_path
        self.progress.processed_manifests += 1

        try:
            manifest = parse_manifest(
                manifest_path, resolve_path(self.config.project_dir, manifest_path),
            )
        except ManifestError as e:
            logger.warning(f"Skipping manifest {e}")
            self._after_manifest()
            return

        if not manifest.name:
            logger.debug(f"Skipping {manifest_path}: no assembly name")
            self._after_manifest()
            return

        origin = classify_origin(manifest.path, self.config.vendored_root)
        sources = find_sources(
            self.config.project_dir, manifest.path, self.config.source_pattern,
        )
        self.progress.total_sources += len(sources)
        for source in sources:
            self._source_queue.append(SourceItem(
                path=source,
                assembly_name=manifest.name,
                origin=origin,
                manifest_path=manifest.path,
            ))

        self._after_manifest()

    def _process_next_source(self) -> None:
        if not self._source_queue:
            self._after_manifest()
            return

        item = self._source_queue.popleft()
        self.progress.current_source = item.path
        self.progress.processed_sources += 1

        for namespace in sorted(read_namespaces(resolve_path(self.config.project_dir, item.path))):
            self.index.register(namespace, item.assembly_name, item.manifest_path, item.origin)

        if not self._source_queue:
            self._after_manifest()

    def _after_manifest(self) -> None:
        """Pick the next state once a manifest or source has been handled."""
        if self._source_queue:
            self.progress.state = ScanState.ENUMERATING_SOURCES
        elif self._manifest_queue:
            self.progress.state = ScanState.ENUMERATING_MANIFESTS
        else:
            self.progress.state = ScanState.FINISHING

    def _finish(self) -> None:
        outcome = ScanOutcome.CANCELLED if self._cancel_requested else ScanOutcome.COMPLETED
        self._manifest_queue.clear()
        self._source_queue.clear()
        self._cancel_requested = False

        self.index.normalise_paths()
        final = replace(self.progress, state=ScanState.IDLE)

        try:
            self.store.save(self.index)
        except OSError:
            logger.error(f"Failed to save index to {self.store.path}")
            self.progress = final
            raise

        self.progress = final
        self.result = ScanResult(
            outcome=outcome,
            progress=final,
            namespace_count=len(self.index),
            index_path=str(self.store.path),
        )
        logger.info(self.result.summary())

    def _report(self) -> None:
        if self.progress_callback:
            self.progress_callback(self.progress)
