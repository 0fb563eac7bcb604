"""
Exception types raised by the build pipeline.

Only failures the user has to hear about are exceptions. A missing project
root, a superseded build and an unparseable output line are normal results.
"""
from pathlib import Path
from typing import Optional, Sequence


class SaveBuildError(Exception):
    """Base class for every error raised by savebuild."""


class ConfigError(SaveBuildError):
    """Configuration value that cannot be used."""


class BuildSpawnError(SaveBuildError):
    """
    The compiler process could not be started (missing executable,
    permission denied, bad working directory).
    """

    def __init__(self, command: Sequence[str], cwd: Path, cause: Optional[BaseException] = None):
        self.command = list(command)
        self.cwd = cwd
        self.cause = cause
        reason = f": {cause}" if cause else ""
        super().__init__(f"Failed to start {' '.join(self.command)!r} in {cwd}{reason}")
