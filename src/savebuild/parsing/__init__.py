from .diagnostics import (
    BuildOutcome,
    Diagnostic,
    DiagnosticSet,
    Severity,
    classify,
    group_by_file,
    parse_line,
    parse_output,
)

__all__ = [
    "BuildOutcome",
    "Diagnostic",
    "DiagnosticSet",
    "Severity",
    "classify",
    "group_by_file",
    "parse_line",
    "parse_output",
]
