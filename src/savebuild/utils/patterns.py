"""
Glob patterns that decide which saved files trigger a build.

Patterns are matched against the path relative to the workspace, always with
forward slashes. "*" crosses directory boundaries, so "src/*" covers every
file below src/.
"""
import fnmatch
import re
from typing import Callable, Iterable, List, Pattern


def compile_pattern(pattern: str) -> Pattern[str]:
    return re.compile(fnmatch.translate(pattern))


def compile_prefixes(patterns: Iterable[str]) -> Callable[[str], bool]:
    """Builds a predicate that is True when any pattern matches the path."""
    compiled: List[Pattern[str]] = [compile_pattern(p) for p in patterns]

    def matches(relative_path: str) -> bool:
        normalized = relative_path.replace("\\", "/")
        return any(regex.match(normalized) for regex in compiled)

    return matches
