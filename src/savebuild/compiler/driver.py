import asyncio
import os
import shlex
import shutil
import signal
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from ..errors import BuildSpawnError
from ..parsing.diagnostics import BuildOutcome, classify
from .locator import ProjectRoot
from .registry import BuildRegistry, InFlightBuild

# tsc can print very long type names on a single line
STREAM_LIMIT = 1024 * 1024

POSIX = os.name == "posix"


@dataclass
class BuildResult:
    lines: List[str] = field(default_factory=list)
    return_code: Optional[int] = None
    cancelled: bool = False

    @property
    def outcome(self) -> BuildOutcome:
        if self.cancelled:
            return BuildOutcome.SKIPPED
        if not self.lines:
            # Nothing printed: a clean exit means a clean build
            return BuildOutcome.SUCCESS if self.return_code == 0 else BuildOutcome.ERROR
        outcome = BuildOutcome.SUCCESS
        for line in self.lines:
            outcome = outcome.combine(classify(line))
        return outcome


class BuildRunner:
    """
    Runs the compiler for one project at a time per project name.
    A new run for a project kills the one still in flight and waits for it
    to exit before spawning, so only the newest build ever completes.
    Each project has its own lock; a slow kill never holds up another project.
    """

    def __init__(
        self,
        compiler: str = "tsc",
        kill_grace_seconds: float = 2.0,
        registry: Optional[BuildRegistry] = None,
    ):
        self.kill_grace_seconds = kill_grace_seconds
        self.registry = registry if registry is not None else BuildRegistry()
        self._locks: Dict[str, asyncio.Lock] = {}
        self.set_compiler(compiler)

    def set_compiler(self, compiler: str):
        """
        Updates the compiler command. Missing executables are only logged
        here; the failure surfaces when a build is attempted.
        """
        command = shlex.split(compiler)
        if not command:
            raise ValueError("Compiler command is empty")

        path = shutil.which(command[0])
        if not path:
            logger.warning(f"Compiler '{command[0]}' not found on PATH")
        else:
            command[0] = path

        self.compiler = compiler
        self.command = command

    async def run(self, root: ProjectRoot) -> BuildResult:
        async with self._lock_for(root.name):
            await self.cancel(root.name)
            process = await self._spawn(root)
            build = InFlightBuild(project_name=root.name, process=process)
            try:
                self.registry.register(build)
            except BaseException:
                build.cancelled = True
                await self._terminate(build)
                raise

        try:
            lines = await self._collect(build)
            return_code = await process.wait()
        except asyncio.CancelledError:
            build.cancelled = True
            await self._terminate(build)
            raise
        finally:
            self.registry.release(build)

        if build.cancelled:
            logger.info(f"{root.name}: build superseded, discarding {len(lines)} line(s)")
            return BuildResult(return_code=return_code, cancelled=True)

        logger.debug(f"{root.name}: compiler exited with {return_code}, {len(lines)} line(s)")
        return BuildResult(lines=lines, return_code=return_code)

    async def cancel(self, project_name: str) -> bool:
        """
        Supersedes the registered build for a project and kills what is left
        of its process group. A compiler that has exited but whose children
        still hold stdout open counts as running. Returns False when there
        was nothing left to cancel.
        """
        build = self.registry.get(project_name)
        if build is None or build.cancelled:
            return False

        logger.info(f"{project_name}: cancelling in-flight build (pid {build.process.pid})")
        build.cancelled = True
        await self._terminate(build)
        return True

    async def cancel_all(self) -> None:
        for build in self.registry.active():
            await self.cancel(build.project_name)

    def _lock_for(self, project_name: str) -> asyncio.Lock:
        return self._locks.setdefault(project_name, asyncio.Lock())

    async def _spawn(self, root: ProjectRoot) -> asyncio.subprocess.Process:
        logger.info(f"{root.name}: running {self.compiler} in {root.path}")
        try:
            return await asyncio.create_subprocess_exec(
                *self.command,
                cwd=str(root.path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                limit=STREAM_LIMIT,
                # own process group, so wrappers like npx die with their children
                start_new_session=POSIX,
            )
        except OSError as e:
            raise BuildSpawnError(self.command, root.path, e) from e

    async def _collect(self, build: InFlightBuild) -> List[str]:
        lines = []
        async for raw in build.process.stdout:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if build.cancelled:
                continue
            logger.debug(f"[{build.project_name}] {line}")
            lines.append(line)
        return lines

    async def _terminate(self, build: InFlightBuild) -> None:
        process = build.process
        try:
            if POSIX:
                os.killpg(process.pid, signal.SIGKILL)
            elif not build.finished:
                process.kill()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"{build.project_name}: compiler (pid {process.pid}) did not exit "
                f"within {self.kill_grace_seconds}s of being killed"
            )
