"""
Shared fixtures: a scripted fake compiler and a publisher that records calls.
No real tsc is needed anywhere in the suite.
"""
import shlex
import sys
import textwrap
from pathlib import Path
from typing import List, Optional

import pytest

from savebuild.utils.config import BuildSettings

FAKE_COMPILER = textwrap.dedent(
    """
    import os, pathlib, sys, time

    PLANS = {plans!r}

    counter = pathlib.Path("runs.txt")
    run = int(counter.read_text()) + 1 if counter.exists() else 1
    counter.write_text(str(run))
    plan = PLANS[min(run, len(PLANS)) - 1]

    if plan.get("cwd"):
        print(os.getcwd(), flush=True)
    for line in plan.get("before", []):
        print(line, flush=True)
    time.sleep(plan.get("sleep", 0))
    for line in plan.get("lines", []):
        print(line, flush=True)
    sys.exit(plan.get("code", 0))
    """
)


def write_fake_compiler(directory: Path, *plans: dict) -> str:
    """
    Writes a compiler stand-in and returns the command line that runs it.
    Each invocation in the same project uses the next plan; the last plan
    repeats.
    """
    script = directory / "fake_tsc.py"
    script.write_text(FAKE_COMPILER.format(plans=list(plans) or [{}]))
    return shlex.join([sys.executable, str(script)])


def make_project(parent: Path, name: str = "app", marker: str = "tsconfig.json") -> Path:
    project = parent / name
    (project / "src").mkdir(parents=True)
    (project / marker).write_text("{}")
    (project / "src" / "index.ts").write_text("export {};\n")
    return project


class RecordingPublisher:
    def __init__(self):
        self.calls: List[tuple] = []

    def clear_all(self) -> None:
        self.calls.append(("clear_all",))

    def set_diagnostics(self, file, diagnostics) -> None:
        self.calls.append(("set", file, list(diagnostics)))

    def notify(self, outcome, project_name: Optional[str]) -> None:
        self.calls.append(("notify", outcome, project_name))

    def notify_failure(self, message: str) -> None:
        self.calls.append(("failure", message))

    def published(self):
        return {call[1]: call[2] for call in self.calls if call[0] == "set"}

    def notices(self):
        return [call[1:] for call in self.calls if call[0] in ("notify", "failure")]


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "ws"
    ws.mkdir()
    return ws.resolve()


@pytest.fixture
def settings(workspace):
    return BuildSettings(workspace=workspace, kill_grace_seconds=5.0)
