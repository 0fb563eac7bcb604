import time
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from ..parsing.diagnostics import BuildOutcome, Diagnostic, DiagnosticSet, Severity
from ..publisher import outcome_message


@dataclass
class BuildState:
    """
    The published diagnostics and the latest notice, kept in memory.
    Satisfies the DiagnosticPublisher protocol.
    """
    diagnostics: DiagnosticSet = field(default_factory=dict)
    project_name: Optional[str] = None
    outcome: Optional[BuildOutcome] = None
    message: str = ""
    failed: bool = False
    last_update: float = 0.0

    @property
    def has_errors(self) -> bool:
        """Returns True if any published diagnostic is an error."""
        return any(d.severity == Severity.ERROR for d in self.all_diagnostics())

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.all_diagnostics() if d.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.all_diagnostics() if d.severity == Severity.WARNING)

    def all_diagnostics(self) -> List[Diagnostic]:
        return [d for diags in self.diagnostics.values() for d in diags]

    def clear_all(self) -> None:
        self.diagnostics = {}
        self._touch()

    def set_diagnostics(self, file: str, diagnostics: List[Diagnostic]) -> None:
        if diagnostics:
            self.diagnostics[file] = list(diagnostics)
        else:
            self.diagnostics.pop(file, None)
        self._touch()

    def notify(self, outcome: BuildOutcome, project_name: Optional[str]) -> None:
        if outcome == BuildOutcome.SKIPPED:
            logger.info(outcome_message(outcome, project_name))
            return
        self.project_name = project_name
        self.outcome = outcome
        self.failed = False
        self.message = outcome_message(outcome, project_name)
        self._touch()

    def notify_failure(self, message: str) -> None:
        self.failed = True
        self.message = message
        self._touch()

    def _touch(self) -> None:
        self.last_update = time.time()
