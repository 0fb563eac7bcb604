"""
Tests for BuildCoordinator: admission control, publishing, supersession and
failure handling. Compilation runs against the fake compiler script.
"""
import asyncio
import dataclasses
from unittest.mock import patch

import pytest

from conftest import make_project, write_fake_compiler
from savebuild.engine import BuildCoordinator
from savebuild.errors import ConfigError
from savebuild.parsing.diagnostics import BuildOutcome, Severity
from savebuild.publisher import FAILED_TO_BUILD
from savebuild.utils.state import BuildState


def _coordinator(settings, publisher, compiler, **overrides):
    settings = dataclasses.replace(settings, compiler=compiler, **overrides)
    return BuildCoordinator(settings, publisher)


class TestShouldBuild:
    def test_matching_file(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(settings, publisher)
        assert coordinator.should_build(workspace / "app" / "src" / "a.ts")

    def test_disabled(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(dataclasses.replace(settings, enabled=False), publisher)
        assert not coordinator.should_build(workspace / "a.ts")

    def test_no_workspace(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(dataclasses.replace(settings, workspace=None), publisher)
        assert not coordinator.should_build(workspace / "a.ts")

    def test_wrong_extension(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(settings, publisher)
        assert not coordinator.should_build(workspace / "dist" / "a.js")

    def test_outside_workspace(self, settings, publisher, tmp_path):
        coordinator = BuildCoordinator(settings, publisher)
        assert not coordinator.should_build(tmp_path / "elsewhere" / "a.ts")

    def test_prefix_filter(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(dataclasses.replace(settings, prefixes=("web/*",)), publisher)
        assert coordinator.should_build(workspace / "web" / "src" / "a.ts")
        assert not coordinator.should_build(workspace / "api" / "src" / "a.ts")

    def test_no_prefixes_rejects_all(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(dataclasses.replace(settings, prefixes=()), publisher)
        assert not coordinator.should_build(workspace / "a.ts")

    def test_empty_extensions_accepts_any(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(dataclasses.replace(settings, extensions=()), publisher)
        assert coordinator.should_build(workspace / "a.tsx")


class TestBuild:
    @pytest.mark.asyncio
    async def test_publishes_grouped_diagnostics(self, settings, publisher, workspace, tmp_path):
        project = make_project(workspace)
        compiler = write_fake_compiler(tmp_path, {"lines": [
            "src/a.ts(1,1): error TS1: first",
            "src/b.ts(2,2): warning TS2: second",
            "src/a.ts(3,3): error TS3: third",
            "src/c.ts(4,4): error TS4: fourth",
            "Found 3 errors.",
        ], "code": 2})
        coordinator = _coordinator(settings, publisher, compiler)

        report = await coordinator.build(project / "src" / "index.ts")

        assert report.outcome == BuildOutcome.ERROR
        assert report.project.name == "app"
        published = publisher.published()
        a, b, c = (str(project / "src" / n) for n in ("a.ts", "b.ts", "c.ts"))
        assert list(published) == [a, b, c]
        assert [d.code for d in published[a]] == ["TS1", "TS3"]
        assert published[b][0].severity == Severity.WARNING
        assert publisher.notices() == [(BuildOutcome.ERROR, "app")]

    @pytest.mark.asyncio
    async def test_clean_build_notifies_success(self, settings, publisher, workspace, tmp_path):
        project = make_project(workspace)
        coordinator = _coordinator(settings, publisher, write_fake_compiler(tmp_path, {}))

        report = await coordinator.build(project / "src" / "index.ts")

        assert report.outcome == BuildOutcome.SUCCESS
        assert publisher.published() == {}
        assert publisher.notices() == [(BuildOutcome.SUCCESS, "app")]

    @pytest.mark.asyncio
    async def test_no_project_is_skipped_silently(self, settings, publisher, workspace, tmp_path):
        (workspace / "loose").mkdir()
        coordinator = _coordinator(
            settings, publisher, write_fake_compiler(tmp_path, {}), marker="savebuild-test.marker"
        )

        report = await coordinator.build(workspace / "loose" / "a.ts")

        assert report.outcome == BuildOutcome.SKIPPED
        assert report.project is None
        assert publisher.calls == []

    @pytest.mark.asyncio
    async def test_fixed_files_are_cleared(self, settings, publisher, workspace, tmp_path):
        project = make_project(workspace)
        compiler = write_fake_compiler(
            tmp_path,
            {"lines": ["src/a.ts(1,1): error TS1: x", "src/b.ts(1,1): error TS2: y"]},
            {"lines": ["src/b.ts(5,1): error TS2: y"]},
        )
        coordinator = _coordinator(settings, publisher, compiler)
        a, b = str(project / "src" / "a.ts"), str(project / "src" / "b.ts")

        await coordinator.build(project / "src" / "index.ts")
        publisher.calls.clear()
        await coordinator.build(project / "src" / "index.ts")

        published = publisher.published()
        assert published[a] == []
        assert [d.line for d in published[b]] == [5]

    @pytest.mark.asyncio
    async def test_republishing_replaces(self, settings, workspace, tmp_path):
        project = make_project(workspace)
        compiler = write_fake_compiler(tmp_path, {"lines": ["src/a.ts(1,1): error TS1: x"]})
        state = BuildState()
        coordinator = _coordinator(settings, state, compiler)

        await coordinator.build(project / "src" / "index.ts")
        await coordinator.build(project / "src" / "index.ts")

        assert len(state.all_diagnostics()) == 1
        assert state.error_count == 1

    @pytest.mark.asyncio
    async def test_spawn_failure_reported_once(self, settings, publisher, workspace):
        project = make_project(workspace)
        coordinator = _coordinator(settings, publisher, "savebuild-no-such-compiler-xyz")

        report = await coordinator.build(project / "src" / "index.ts")

        assert report.failed
        assert publisher.calls == [("failure", FAILED_TO_BUILD)]
        assert len(coordinator.runner.registry) == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_does_not_escape(self, settings, publisher, workspace, tmp_path):
        project = make_project(workspace)
        coordinator = _coordinator(settings, publisher, write_fake_compiler(tmp_path, {}))

        with patch("savebuild.engine.parse_output", side_effect=RuntimeError("boom")):
            report = await coordinator.build(project / "src" / "index.ts")

        assert report.failed
        assert publisher.notices() == [(FAILED_TO_BUILD,)]


class TestOnTrigger:
    @pytest.mark.asyncio
    async def test_filtered_trigger_skips(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(settings, publisher)
        outcome = await coordinator.on_trigger(workspace / "readme.md")
        assert outcome == BuildOutcome.SKIPPED
        assert publisher.calls == []

    @pytest.mark.asyncio
    async def test_rapid_triggers_publish_only_latest(self, settings, publisher, workspace, tmp_path):
        project = make_project(workspace)
        compiler = write_fake_compiler(
            tmp_path,
            {"before": ["src/stale.ts(1,1): error TS1: stale"], "sleep": 30},
            {"lines": ["src/fresh.ts(2,3): warning TS2: fresh"]},
        )
        coordinator = _coordinator(settings, publisher, compiler)
        source = project / "src" / "index.ts"

        first = asyncio.create_task(coordinator.on_trigger(source))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + 10
        while "app" not in coordinator.runner.registry:
            assert loop.time() < deadline, "first build never started"
            await asyncio.sleep(0.01)
        old_build = coordinator.runner.registry.get("app")

        second_outcome = await asyncio.wait_for(coordinator.on_trigger(source), timeout=10)
        first_outcome = await asyncio.wait_for(first, timeout=10)

        assert old_build.cancelled
        assert first_outcome == BuildOutcome.SKIPPED
        assert second_outcome == BuildOutcome.WARNING
        assert list(publisher.published()) == [str(project / "src" / "fresh.ts")]
        assert publisher.notices() == [(BuildOutcome.WARNING, "app")]


class TestLifecycle:
    def test_submit_before_start_raises(self, settings, publisher, workspace):
        coordinator = BuildCoordinator(settings, publisher)
        with pytest.raises(RuntimeError):
            coordinator.submit(str(workspace / "a.ts"))

    @pytest.mark.asyncio
    async def test_start_without_workspace_raises(self, settings, publisher):
        coordinator = BuildCoordinator(dataclasses.replace(settings, workspace=None), publisher)
        with pytest.raises(ConfigError):
            coordinator.start()

    @pytest.mark.asyncio
    async def test_submit_runs_on_loop(self, settings, publisher, workspace, tmp_path):
        project = make_project(workspace)
        coordinator = _coordinator(settings, publisher, write_fake_compiler(tmp_path, {}))
        with patch.object(coordinator.watcher, "start_watching") as start_watching:
            coordinator.start()
        start_watching.assert_called_once()

        future = await asyncio.to_thread(coordinator.submit, str(project / "src" / "index.ts"))
        outcome = await asyncio.wrap_future(future)

        assert outcome == BuildOutcome.SUCCESS
        assert publisher.notices() == [(BuildOutcome.SUCCESS, "app")]

    def test_clear_calls_clear_all(self, settings, publisher):
        coordinator = BuildCoordinator(settings, publisher)
        coordinator.clear()
        assert publisher.calls == [("clear_all",)]
