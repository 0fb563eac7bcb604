import asyncio
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Set, Union

from loguru import logger

from .compiler import BuildRunner, ProjectRoot, locate
from .errors import ConfigError
from .parsing import BuildOutcome, DiagnosticSet, group_by_file, parse_output
from .publisher import FAILED_TO_BUILD, DiagnosticPublisher
from .utils.config import BuildSettings
from .utils.patterns import compile_prefixes
from .utils.watcher import FileWatcher


@dataclass
class BuildReport:
    outcome: BuildOutcome
    project: Optional[ProjectRoot] = None
    diagnostics: DiagnosticSet = field(default_factory=dict)
    failed: bool = False


class BuildCoordinator:
    """
    Turns save events into project builds and publishes their diagnostics.

    Builds are single-flight per project: a newer trigger kills the build
    still running for the same project, and only the newest one publishes.
    Builds for different projects run side by side.
    """

    def __init__(
        self,
        settings: BuildSettings,
        publisher: DiagnosticPublisher,
        runner: Optional[BuildRunner] = None,
    ):
        self.settings = settings
        self.publisher = publisher
        self.runner = runner if runner else BuildRunner(settings.compiler, settings.kill_grace_seconds)
        self.watcher = FileWatcher()
        self.last_file: Optional[str] = None
        self._matches = compile_prefixes(settings.prefixes)
        # project path -> files its last published build reported on
        self._published: Dict[Path, Set[str]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Binds to the event loop and starts watching the workspace."""
        if self.settings.workspace is None:
            raise ConfigError("No workspace configured")
        self._loop = loop if loop else asyncio.get_running_loop()
        self.watcher.start_watching(
            str(self.settings.workspace),
            self.submit,
            accept=self.should_build,
            debounce_seconds=self.settings.debounce_seconds,
        )

    def stop(self):
        self.watcher.stop_watching()

    async def shutdown(self):
        self.stop()
        await self.runner.cancel_all()

    def submit(self, file_path: str) -> Future:
        """Schedules a trigger from any thread (the watchdog thread in practice)."""
        if self._loop is None:
            raise RuntimeError("BuildCoordinator.start() has not been called")
        return asyncio.run_coroutine_threadsafe(self.on_trigger(file_path), self._loop)

    def should_build(self, file_path: Union[str, Path]) -> bool:
        settings = self.settings
        if not settings.enabled or settings.workspace is None:
            return False

        path = Path(file_path).resolve()
        if settings.extensions and path.suffix not in settings.extensions:
            return False

        try:
            relative = path.relative_to(settings.workspace)
        except ValueError:
            return False
        return self._matches(relative.as_posix())

    async def on_trigger(self, file_path: Union[str, Path]) -> BuildOutcome:
        if not self.should_build(file_path):
            logger.debug(f"Ignoring save of {file_path}")
            return BuildOutcome.SKIPPED
        report = await self.build(file_path)
        return report.outcome

    async def build(self, file_path: Union[str, Path]) -> BuildReport:
        """Builds the project that owns file_path and publishes the results."""
        self.last_file = str(file_path)
        try:
            root = locate(file_path, self.settings.marker)
            if root is None:
                logger.info(f"No {self.settings.marker} above {file_path}, skipping")
                return BuildReport(BuildOutcome.SKIPPED)

            result = await self.runner.run(root)
            outcome = result.outcome
            if outcome == BuildOutcome.SKIPPED:
                return BuildReport(outcome, root)

            _, diagnostics = parse_output(result.lines, root.path)
            grouped = group_by_file(diagnostics)
            self._publish(root, grouped, outcome)
            return BuildReport(outcome, root, grouped)

        except Exception:
            logger.exception(f"Build for {file_path} failed")
            self.publisher.notify_failure(FAILED_TO_BUILD)
            return BuildReport(BuildOutcome.ERROR, failed=True)

    def clear(self):
        self._published.clear()
        self.publisher.clear_all()

    def _publish(self, root: ProjectRoot, grouped: DiagnosticSet, outcome: BuildOutcome):
        # Files fixed since the last build of this project get an empty set
        for stale in self._published.get(root.path, set()) - set(grouped):
            self.publisher.set_diagnostics(stale, [])
        for file, diagnostics in grouped.items():
            self.publisher.set_diagnostics(file, diagnostics)
        self._published[root.path] = set(grouped)

        logger.info(f"{root.name}: {outcome.value}, {sum(map(len, grouped.values()))} diagnostic(s)")
        self.publisher.notify(outcome, root.name)
