"""Tests for the step-wise scan driver."""

from __future__ import annotations

import json
import logging
import os

import pytest

from asmmap.config import OwnershipOrigin, ScanConfig, ScanOutcome, ScanProgress, ScanState
from asmmap.graph.namespace_index import NamespaceIndex
from asmmap.output import IndexStore, loads
from asmmap.pipeline import ScanDriver

PROJECT = os.path.join(os.path.dirname(__file__), "fixtures", "unity_project")
ROOTS = ["Packages/com.acme.alpha", "Assets/Scripts"]


def _driver(tmp_path, index=None, roots=None, callback=None) -> ScanDriver:
    config = ScanConfig(project_dir=PROJECT, roots=list(roots or ROOTS))
    store = IndexStore(str(tmp_path / "index.json"))
    return ScanDriver(config, index if index is not None else NamespaceIndex(), store, callback)


class TestEndToEnd:
    def test_project_local_assembly_owns_all(self, tmp_path):
        driver = _driver(tmp_path)
        result = driver.run()

        assert result.outcome == ScanOutcome.COMPLETED
        idx = driver.index
        assert set(idx.mappings) == {"Alpha", "Alpha.Widgets", "Alpha.Widgets.Core"}
        for ns in ("Alpha", "Alpha.Widgets", "Alpha.Widgets.Core"):
            assert idx.get(ns).assembly_name == "PkgB"
            assert idx.get(ns).origin == OwnershipOrigin.PROJECT_LOCAL
            assert idx.get(ns).manifest_path == "Assets/Scripts/PkgB.asmdef"

    def test_root_order_does_not_change_winner(self, tmp_path):
        driver = _driver(tmp_path, roots=list(reversed(ROOTS)))
        driver.run()
        assert driver.index.get("Alpha.Widgets").assembly_name == "PkgB"

    def test_result_persisted(self, tmp_path):
        driver = _driver(tmp_path)
        driver.run()
        assert IndexStore(str(tmp_path / "index.json")).load() == driver.index

    def test_counts(self, tmp_path):
        result = _driver(tmp_path).run()
        assert result.progress.processed_manifests == 2
        assert result.progress.total_manifests == 2
        assert result.progress.processed_sources == 2
        assert result.progress.total_sources == 2
        assert result.namespace_count == 3
        assert result.progress.summary() == "Asmdefs: 2/2\nFiles: 2/2"


class TestFailures:
    def test_bad_manifests_skipped(self, tmp_path, caplog):
        caplog.set_level(logging.WARNING)
        driver = _driver(tmp_path, roots=["Packages"])
        result = driver.run()

        assert result.outcome == ScanOutcome.COMPLETED
        assert result.progress.processed_manifests == 4
        assert "Broken.asmdef" in caplog.text
        # Broken and nameless manifests contribute nothing
        assert "Broken" not in driver.index
        assert "Orphan" not in driver.index
        assert driver.index.get("Alpha.Widgets").assembly_name == "PkgA"
        assert driver.index.get("Alpha.Widgets").origin == OwnershipOrigin.VENDORED

    def test_missing_roots_finish_empty(self, tmp_path):
        result = _driver(tmp_path, roots=["Packages/com.nothing"]).run()
        assert result.outcome == ScanOutcome.COMPLETED
        assert result.namespace_count == 0
        assert (tmp_path / "index.json").exists()

    def test_unreadable_source_skipped(self, tmp_path, caplog):
        caplog.set_level(logging.WARNING)
        project = tmp_path / "project"
        scripts = project / "Assets" / "Scripts"
        scripts.mkdir(parents=True)
        (scripts / "Game.asmdef").write_text('{"name": "Game"}')
        (scripts / "Bad.cs").write_bytes(b"\xff\xfe\xfd")
        (scripts / "Good.cs").write_text("namespace Game.Logic {}")

        config = ScanConfig(project_dir=str(project), roots=["Assets"])
        driver = ScanDriver(config, NamespaceIndex(), IndexStore(str(tmp_path / "index.json")))
        result = driver.run()

        assert result.progress.processed_sources == 2
        assert set(driver.index.mappings) == {"Game", "Game.Logic"}
        assert "Bad.cs" in caplog.text


class TestStateMachine:
    def test_start_rejected_without_roots(self, tmp_path):
        driver = _driver(tmp_path)
        assert driver.start([]) is False
        assert driver.state == ScanState.IDLE
        assert driver.run([]) is None

    def test_start_rejected_while_scanning(self, tmp_path):
        driver = _driver(tmp_path)
        assert driver.start() is True
        assert driver.start() is False
        assert driver.state == ScanState.PREPARING

    def test_state_sequence(self, tmp_path):
        driver = _driver(tmp_path)
        driver.start()
        states = [driver.state]
        while driver.step():
            states.append(driver.state)
        states.append(driver.state)

        assert states == [
            ScanState.PREPARING,
            ScanState.ENUMERATING_MANIFESTS,   # after locating manifests
            ScanState.ENUMERATING_SOURCES,     # after PkgA
            ScanState.ENUMERATING_MANIFESTS,   # after Widget.cs
            ScanState.ENUMERATING_SOURCES,     # after PkgB
            ScanState.FINISHING,               # after WidgetCore.cs
            ScanState.IDLE,
        ]

    def test_progress_reported_every_step(self, tmp_path):
        seen = []
        driver = _driver(tmp_path, callback=lambda p: seen.append((p.state, p.processed_sources)))
        driver.run()
        assert len(seen) == 6
        assert seen[-1] == (ScanState.IDLE, 2)

    def test_step_when_idle(self, tmp_path):
        assert _driver(tmp_path).step() is False

    def test_rescan_keeps_stale_entries(self, tmp_path):
        idx = NamespaceIndex()
        idx.register("Removed.Feature", "OldAsm", "Assets/Old/OldAsm.asmdef", OwnershipOrigin.PROJECT_LOCAL)
        driver = _driver(tmp_path, index=idx)
        driver.run()
        assert driver.index.get("Removed.Feature").assembly_name == "OldAsm"
        assert len(driver.index) == 4


class TestCancellation:
    def test_cancel_persists_partial_results(self, tmp_path):
        driver = _driver(tmp_path)
        driver.start()
        for _ in range(3):  # prepare, PkgA, Widget.cs
            driver.step()
        driver.cancel()
        assert driver.step() is False

        expected = NamespaceIndex()
        for ns in ("Alpha", "Alpha.Widgets"):
            expected.register(ns, "PkgA", "Packages/com.acme.alpha/PkgA.asmdef", OwnershipOrigin.VENDORED)

        assert driver.result.outcome == ScanOutcome.CANCELLED
        assert driver.index == expected
        assert IndexStore(str(tmp_path / "index.json")).load() == expected

    def test_restart_after_cancel(self, tmp_path):
        driver = _driver(tmp_path)
        driver.start()
        driver.step()
        driver.cancel()
        driver.step()
        assert driver.state == ScanState.IDLE
        assert len(driver.index) == 0

        result = driver.run()
        assert result.outcome == ScanOutcome.COMPLETED
        assert result.progress.processed_manifests == 2
        assert driver.index.get("Alpha").assembly_name == "PkgB"

    def test_cancel_when_idle_is_noop(self, tmp_path):
        driver = _driver(tmp_path)
        driver.cancel()
        assert driver.run().outcome == ScanOutcome.COMPLETED

    def test_keyboard_interrupt_cancels(self, tmp_path):
        calls = []

        def interrupt(progress):
            calls.append(progress.state)
            if len(calls) == 2:
                raise KeyboardInterrupt

        driver = _driver(tmp_path, callback=interrupt)
        result = driver.run()
        assert result.outcome == ScanOutcome.CANCELLED
        assert (tmp_path / "index.json").exists()


class TestFinishing:
    def test_loaded_backslash_paths_normalised(self, tmp_path):
        text = json.dumps({"mappings": {"Old.Feature": {
            "assemblyName": "OldAsm",
            "asmdefPath": "Assets\\Old\\OldAsm.asmdef",
            "source": "Assets",
        }}})
        idx = loads(text)
        assert idx.get("Old.Feature").manifest_path == "Assets\\Old\\OldAsm.asmdef"

        driver = _driver(tmp_path, index=idx)
        driver.run()

        assert driver.index.get("Old.Feature").manifest_path == "Assets/Old/OldAsm.asmdef"
        with open(tmp_path / "index.json") as f:
            saved = json.load(f)["mappings"]
        assert saved["Old.Feature"]["asmdefPath"] == "Assets/Old/OldAsm.asmdef"
        assert all("\\" not in entry["asmdefPath"] for entry in saved.values())

    def test_save_failure_raises_and_returns_to_idle(self, tmp_path, caplog):
        caplog.set_level(logging.ERROR)
        blocked = tmp_path / "index.json"
        blocked.mkdir()

        config = ScanConfig(project_dir=PROJECT, roots=list(ROOTS))
        driver = ScanDriver(config, NamespaceIndex(), IndexStore(str(blocked)))

        with pytest.raises(OSError):
            driver.run()

        assert driver.state == ScanState.IDLE
        assert driver.result is None
        assert "Failed to save index" in caplog.text
        assert driver.start() is True


class TestScanProgress:
    def test_fraction_without_sources(self):
        assert ScanProgress().fraction == 0.0
        assert ScanProgress(processed_manifests=3, total_manifests=3).fraction == 0.0

    def test_fraction_counts_sources(self):
        assert ScanProgress(total_sources=4, processed_sources=1).fraction == 0.25
        assert ScanProgress(total_sources=2, processed_sources=2).fraction == 1.0

    def test_fraction_reported_during_scan(self, tmp_path):
        seen = []
        _driver(tmp_path, callback=lambda p: seen.append(p.fraction)).run()
        assert seen[0] == 0.0
        assert seen[-1] == 1.0
