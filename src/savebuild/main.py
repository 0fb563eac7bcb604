import argparse
import asyncio
import dataclasses
import os
import sys
from pathlib import Path

from loguru import logger

from .engine import BuildCoordinator, BuildReport
from .errors import SaveBuildError
from .parsing import BuildOutcome
from .publisher import ConsolePublisher
from .ui.app import run_tui
from .utils.config import BuildSettings, ConfigManager

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(description="SaveBuild: build the enclosing project on every save")
    parser.add_argument("workspace", nargs="?", help="Workspace directory to watch (default: current directory)")
    parser.add_argument("--build", metavar="FILE", help="Build the project containing FILE once and exit")
    parser.add_argument("--plain", action="store_true", help="Print results to the console instead of the TUI")
    parser.add_argument("--compiler", help="Compiler command to run in the project root")
    parser.add_argument("--marker", help="File name that marks a project root")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    return parser


def configure_logging(log_dir: Path, verbose: bool = False, console: bool = False):
    """
    Always logs to a file under log_dir; the TUI owns the terminal, so a
    stderr sink is only added for console modes.
    """
    level = "DEBUG" if verbose else "INFO"
    logger.remove()
    logger.add(
        log_dir / "savebuild.log",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="1 MB",
        retention=3,
        enqueue=True,
    )
    if console:
        logger.add(sys.stderr, level=level if verbose else "WARNING", format=LOG_FORMAT, colorize=True)


def _settings_from_args(args: argparse.Namespace, config: ConfigManager) -> BuildSettings:
    workspace = os.path.abspath(args.workspace) if args.workspace else None
    settings = BuildSettings.from_config(config, workspace=workspace)
    if settings.workspace is None:
        settings = dataclasses.replace(settings, workspace=Path.cwd().resolve())

    overrides = {}
    if args.compiler:
        overrides["compiler"] = args.compiler
    if args.marker:
        overrides["marker"] = args.marker
    return dataclasses.replace(settings, **overrides) if overrides else settings


async def build_once(settings: BuildSettings, file_path: str) -> BuildReport:
    coordinator = BuildCoordinator(settings, ConsolePublisher())
    return await coordinator.build(file_path)


async def watch_plain(settings: BuildSettings):
    coordinator = BuildCoordinator(settings, ConsolePublisher())
    coordinator.start()
    print(f"Watching {settings.workspace} (Ctrl+C to stop)")
    try:
        await asyncio.Event().wait()
    finally:
        await coordinator.shutdown()


def _exit_code(report: BuildReport) -> int:
    if report.failed:
        return 1
    return 0 if report.outcome in (BuildOutcome.SUCCESS, BuildOutcome.WARNING) else 1


def run():
    parser = _build_parser()
    args = parser.parse_args()

    config = ConfigManager()
    configure_logging(config.config_dir, verbose=args.verbose, console=bool(args.plain or args.build))

    try:
        settings = _settings_from_args(args, config)
    except SaveBuildError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.build:
        abs_path = os.path.abspath(args.build)
        if not os.path.exists(abs_path):
            print(f"Error: File not found: {abs_path}")
            sys.exit(1)

        report = asyncio.run(build_once(settings, abs_path))
        if report.outcome == BuildOutcome.SKIPPED and not report.failed:
            print(f"No {settings.marker} found above {abs_path}")
        sys.exit(_exit_code(report))

    if not settings.workspace.is_dir():
        print(f"Error: Workspace not found: {settings.workspace}")
        sys.exit(1)

    try:
        if args.plain:
            asyncio.run(watch_plain(settings))
        else:
            run_tui(settings)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.exception("Fatal error")
        print(f"Fatal Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
