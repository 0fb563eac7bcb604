from typing import List, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Footer

from ..engine import BuildCoordinator
from ..parsing.diagnostics import BuildOutcome, Diagnostic
from ..publisher import outcome_message
from ..utils.config import BuildSettings
from ..utils.state import BuildState
from .widgets import DiagnosticsTable, StatusBar

# User Palette
C_BG = "#EBEEEE"
C_TEXT = "#191A1A"
C_ACCENT1 = "#45d3ee" # Cyan
C_ACCENT2 = "#9FBFC5" # Muted Blue

_TOAST_SEVERITY = {
    BuildOutcome.SUCCESS: "information",
    BuildOutcome.WARNING: "warning",
    BuildOutcome.ERROR: "error",
}


class TuiPublisher:
    """Records results in a BuildState and asks the app to redraw."""

    def __init__(self, app: "SaveBuildApp"):
        self.app = app
        self.state = app.state

    def clear_all(self) -> None:
        self.state.clear_all()
        self._changed()

    def set_diagnostics(self, file: str, diagnostics: List[Diagnostic]) -> None:
        self.state.set_diagnostics(file, diagnostics)
        self._changed()

    def notify(self, outcome: BuildOutcome, project_name: Optional[str]) -> None:
        self.state.notify(outcome, project_name)
        if outcome != BuildOutcome.SKIPPED:
            self.app.notify(outcome_message(outcome, project_name), severity=_TOAST_SEVERITY[outcome])
        self._changed()

    def notify_failure(self, message: str) -> None:
        self.state.notify_failure(message)
        self.app.notify(message, severity="error")
        self._changed()

    def _changed(self) -> None:
        self.app.post_message(self.app.StateUpdated(self.state))


class SaveBuildApp(App):
    """Live diagnostics for every project built on save."""

    CSS = f"""
    Screen {{
        background: {C_BG};
        color: {C_TEXT};
    }}

    #status-bar {{
        height: 1;
        padding: 0 1;
        background: {C_ACCENT2};
        color: {C_TEXT};
    }}

    #diagnostics {{
        height: 1fr;
        margin: 1 1;
        border: solid {C_ACCENT2};
    }}

    Footer {{ background: {C_TEXT}; color: {C_ACCENT1}; }}
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("r", "rebuild", "Rebuild", show=True),
        Binding("c", "clear", "Clear", show=True),
    ]

    class StateUpdated(Message):
        def __init__(self, state: BuildState) -> None:
            super().__init__()
            self.state = state

    def __init__(self, settings: BuildSettings):
        super().__init__()
        self.settings = settings
        self.state = BuildState()
        self.coordinator = BuildCoordinator(settings, TuiPublisher(self))

    def compose(self) -> ComposeResult:
        yield StatusBar()
        yield DiagnosticsTable(workspace=self.settings.workspace)
        yield Footer()

    def on_mount(self) -> None:
        self.query_one(StatusBar).set_status(workspace=str(self.settings.workspace))
        self.coordinator.start()

    def action_rebuild(self) -> None:
        if self.coordinator.last_file:
            self.run_worker(self.coordinator.build(self.coordinator.last_file))
        else:
            self.notify("Nothing saved yet", severity="warning")

    def action_clear(self) -> None:
        self.coordinator.clear()

    def on_save_build_app_state_updated(self, message: StateUpdated) -> None:
        self.query_one(DiagnosticsTable).show_state(message.state)
        self.query_one(StatusBar).set_status(state=message.state)

    async def on_unmount(self) -> None:
        await self.coordinator.shutdown()


def run_tui(settings: BuildSettings):
    app = SaveBuildApp(settings)
    app.run()
