"""
Custom Widgets
==============
Exposes: DiagnosticsTable, StatusBar

The user edits files in their own editor; watchdog detects saves and these
widgets show what the last build of each project reported.
"""

from __future__ import annotations

from pathlib import Path

from rich.text import Text
from textual.widgets import DataTable, Static

from ..parsing.diagnostics import Severity
from ..publisher import OUTCOME_STYLES
from ..utils.state import BuildState


class DiagnosticsTable(DataTable):
    """
    Main pane: one row per diagnostic, grouped by file.
    ID: #diagnostics
    """

    def __init__(self, workspace: Path | None = None, **kwargs) -> None:
        super().__init__(id="diagnostics", zebra_stripes=True, cursor_type="row", **kwargs)
        self.workspace = workspace

    def on_mount(self) -> None:
        self.add_columns("File", "Pos", "Severity", "Code", "Message")

    def show_state(self, state: BuildState) -> None:
        self.clear()
        for file, diagnostics in state.diagnostics.items():
            label = self._label(file)
            for d in diagnostics:
                style = "bold red" if d.severity == Severity.ERROR else "bold yellow"
                self.add_row(
                    label,
                    f"{d.line}:{d.column}",
                    Text(d.severity.value, style=style),
                    d.code,
                    d.message,
                )

    def _label(self, file: str) -> str:
        if self.workspace is None:
            return file
        try:
            return str(Path(file).relative_to(self.workspace))
        except ValueError:
            return file


class StatusBar(Static):
    """
    Top bar: workspace, last project, outcome, error and warning counts.
    ID: #status-bar
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(id="status-bar", **kwargs)
        self._workspace: str = ""
        self._status: Text = Text("idle")
        self._errors: int = 0
        self._warnings: int = 0

    def set_status(
        self,
        *,
        workspace: str | None = None,
        state: BuildState | None = None,
    ) -> None:
        if workspace is not None:
            self._workspace = workspace
        if state is not None:
            self._status = self._describe(state)
            self._errors = state.error_count
            self._warnings = state.warning_count
        self._render_bar()

    @staticmethod
    def _describe(state: BuildState) -> Text:
        if state.failed:
            return Text(state.message, style="bold red")
        if state.outcome is None:
            return Text("idle")
        return Text(state.message, style=OUTCOME_STYLES.get(state.outcome, ""))

    def _render_bar(self) -> None:
        bar = Text()
        if self._workspace:
            bar.append(f"📁 {self._workspace}  │  ")
        bar.append("● ")
        bar.append_text(self._status)
        if self._errors:
            bar.append(f"  │  ❌ {self._errors} error(s)")
        if self._warnings:
            bar.append(f"  │  ⚠ {self._warnings} warning(s)")
        self.update(bar)

