import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger


@dataclass(eq=False)
class InFlightBuild:
    project_name: str
    process: asyncio.subprocess.Process
    cancelled: bool = False

    @property
    def finished(self) -> bool:
        return self.process.returncode is not None


class BuildRegistry:
    """
    Running compiler processes, keyed by project name.

    Owned by a BuildRunner and only touched from its event loop, so plain
    dict access is safe between awaits.
    """

    def __init__(self):
        self._builds: Dict[str, InFlightBuild] = {}

    def __contains__(self, project_name: str) -> bool:
        return project_name in self._builds

    def __len__(self) -> int:
        return len(self._builds)

    def get(self, project_name: str) -> Optional[InFlightBuild]:
        return self._builds.get(project_name)

    def register(self, build: InFlightBuild) -> None:
        current = self._builds.get(build.project_name)
        if current is not None and current is not build and not current.cancelled:
            raise RuntimeError(f"Build for {build.project_name!r} is already running")
        self._builds[build.project_name] = build

    def release(self, build: InFlightBuild) -> None:
        """Drops the entry, unless a newer build has already replaced it."""
        if self._builds.get(build.project_name) is build:
            del self._builds[build.project_name]
            logger.debug(f"Released build slot for {build.project_name}")

    def active(self) -> List[InFlightBuild]:
        return list(self._builds.values())
