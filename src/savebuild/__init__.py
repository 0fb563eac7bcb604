"""
SaveBuild: runs the project compiler whenever a source file is saved and
turns its output into per-file diagnostics.
"""
from .compiler import BuildRunner, ProjectRoot, locate
from .engine import BuildCoordinator, BuildReport
from .parsing import BuildOutcome, Diagnostic, Severity

__version__ = "0.1.0"
