from .driver import BuildResult, BuildRunner
from .locator import DEFAULT_MARKER, ProjectRoot, locate
from .registry import BuildRegistry, InFlightBuild
