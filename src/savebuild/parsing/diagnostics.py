import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union


class BuildOutcome(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SKIPPED = "skipped"

    def combine(self, other: "BuildOutcome") -> "BuildOutcome":
        """Aggregate two outcomes: error beats warning beats success."""
        if BuildOutcome.SKIPPED in (self, other):
            raise ValueError("Skipped outcomes do not aggregate")
        if BuildOutcome.ERROR in (self, other):
            return BuildOutcome.ERROR
        if BuildOutcome.WARNING in (self, other):
            return BuildOutcome.WARNING
        return BuildOutcome.SUCCESS


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    file: str
    line: int    # 1-based, as reported by the compiler
    column: int  # 1-based, as reported by the compiler
    code: str
    message: str
    severity: Severity

    @property
    def position(self) -> Tuple[int, int]:
        """0-based (line, column) pair for editors."""
        return self.line - 1, max(self.column - 1, 0)


DiagnosticSet = Dict[str, List[Diagnostic]]

# Pattern: path(line,col), e.g. src/app.ts(12,5)
RE_FILE_INFO = re.compile(r"^\s*(?P<path>[\w/.\-]+)\((?P<line>[0-9]+),(?P<column>[0-9]+)\)\s*$")
RE_SEVERITY_KEYWORD = re.compile(r"^(?:error|warning)\s+")


def classify(line: str) -> BuildOutcome:
    """
    Coarse severity of a raw output line, by plain substring test.
    Any line mentioning "errors" counts, including "Found 0 errors".
    """
    if "warning" in line:
        return BuildOutcome.WARNING
    if "error" in line:
        return BuildOutcome.ERROR
    return BuildOutcome.SUCCESS


def parse_line(
    line: str,
    severity: BuildOutcome,
    root: Optional[Union[str, Path]] = None,
) -> Optional[Diagnostic]:
    """
    Parses one tsc-style output line into a Diagnostic.
    Example: src/app.ts(12,5): error TS2322: Type mismatch

    Only the first two colons separate fields; the message keeps the rest.
    Returns None for banners, progress text and anything else that does not
    carry a file position.
    """
    if severity == BuildOutcome.WARNING:
        diag_severity = Severity.WARNING
    elif severity == BuildOutcome.ERROR:
        diag_severity = Severity.ERROR
    else:
        return None

    parts = line.split(":", 2)
    if len(parts) < 3:
        return None
    file_info, code, message = parts

    match = RE_FILE_INFO.match(file_info)
    if not match:
        return None

    line_no = int(match.group("line"))
    column = int(match.group("column"))
    if line_no < 1:
        return None

    path = Path(match.group("path"))
    if root is not None and not path.is_absolute():
        path = Path(os.path.normpath(Path(root) / path))

    return Diagnostic(
        file=str(path),
        line=line_no,
        column=column,
        # " error TS2322" is stored as "TS2322"; severity already carries the keyword
        code=RE_SEVERITY_KEYWORD.sub("", code.strip()),
        message=message.strip(),
        severity=diag_severity,
    )


def parse_output(
    lines: Iterable[str],
    root: Optional[Union[str, Path]] = None,
) -> Tuple[BuildOutcome, List[Diagnostic]]:
    """
    Classifies every line and collects the ones that parse.
    The overall outcome comes from classification alone, so a line like
    "Found 2 errors." still fails the build without producing a diagnostic.
    """
    outcome = BuildOutcome.SUCCESS
    diagnostics = []

    for line in lines:
        current = classify(line)
        diagnostic = parse_line(line, current, root)
        if diagnostic:
            diagnostics.append(diagnostic)
        outcome = outcome.combine(current)

    return outcome, diagnostics


def group_by_file(diagnostics: Iterable[Diagnostic]) -> DiagnosticSet:
    grouped: DiagnosticSet = {}
    for diagnostic in diagnostics:
        grouped.setdefault(diagnostic.file, []).append(diagnostic)
    return grouped
