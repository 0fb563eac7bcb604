"""
Where build results go once a build has finished.

The coordinator only talks to the DiagnosticPublisher protocol; hosts decide
how to render. ConsolePublisher prints with rich, BuildState keeps results in
memory and the terminal UI wraps BuildState.
"""
from typing import Dict, List, Optional, Protocol

from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .parsing.diagnostics import BuildOutcome, Diagnostic, Severity

OUTCOME_MESSAGES: Dict[BuildOutcome, str] = {
    BuildOutcome.SUCCESS: "finished without issues",
    BuildOutcome.ERROR: "failed due to errors",
    BuildOutcome.WARNING: "finished with warnings",
    BuildOutcome.SKIPPED: "skipped",
}

FAILED_TO_BUILD = "failed to build"

OUTCOME_STYLES: Dict[BuildOutcome, str] = {
    BuildOutcome.SUCCESS: "bold green",
    BuildOutcome.ERROR: "bold red",
    BuildOutcome.WARNING: "bold yellow",
    BuildOutcome.SKIPPED: "dim",
}


def outcome_message(outcome: BuildOutcome, project_name: Optional[str]) -> str:
    text = OUTCOME_MESSAGES[outcome]
    return f"{project_name}: {text}" if project_name else text


class DiagnosticPublisher(Protocol):
    def clear_all(self) -> None: ...

    def set_diagnostics(self, file: str, diagnostics: List[Diagnostic]) -> None: ...

    def notify(self, outcome: BuildOutcome, project_name: Optional[str]) -> None: ...

    def notify_failure(self, message: str) -> None: ...


class ConsolePublisher:
    """Prints each file's diagnostics as a table, followed by the outcome."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console if console else Console()

    def clear_all(self) -> None:
        logger.debug("Clearing all diagnostics")

    def set_diagnostics(self, file: str, diagnostics: List[Diagnostic]) -> None:
        if not diagnostics:
            self.console.print(Text(f"✓ {file}", style="dim"))
            return

        table = Table(title=file, title_justify="left", show_edge=False, pad_edge=False)
        table.add_column("Pos", justify="right", style="cyan", no_wrap=True)
        table.add_column("Severity", no_wrap=True)
        table.add_column("Code", style="magenta", no_wrap=True)
        table.add_column("Message")
        for d in diagnostics:
            style = "red" if d.severity == Severity.ERROR else "yellow"
            table.add_row(f"{d.line}:{d.column}", Text(d.severity.value, style=style), d.code, d.message)
        self.console.print(table)

    def notify(self, outcome: BuildOutcome, project_name: Optional[str]) -> None:
        message = outcome_message(outcome, project_name)
        if outcome == BuildOutcome.SKIPPED:
            logger.info(message)
            return
        self.console.print(Text(message, style=OUTCOME_STYLES[outcome]))

    def notify_failure(self, message: str) -> None:
        self.console.print(Text(message, style="bold red"))
