import os
import time
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


class SaveEventHandler(FileSystemEventHandler):
    """
    Forwards file saves to a callback, once per debounce window per file.
    Editors that save atomically (write temp file, rename) show up as moves,
    so the destination of a move counts as a save too.
    """
    def __init__(
        self,
        callback: Callable[[str], None],
        accept: Optional[Callable[[str], bool]] = None,
        debounce_seconds: float = 0.5,
    ):
        self.callback = callback
        self.accept = accept
        self.debounce_seconds = debounce_seconds
        self.last_triggered: Dict[str, float] = {}
        self._lock = Lock()

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory:
            self._saved(event.src_path)

    def on_created(self, event: FileSystemEvent):
        if not event.is_directory:
            self._saved(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        if not event.is_directory:
            self._saved(event.dest_path)

    def _saved(self, raw_path):
        path = str(Path(os.fsdecode(raw_path)).absolute())
        if self.accept is not None and not self.accept(path):
            return

        now = time.monotonic()
        with self._lock:
            if now - self.last_triggered.get(path, float("-inf")) <= self.debounce_seconds:
                return
            self.last_triggered[path] = now

        logger.debug(f"Save detected: {path}")
        self.callback(path)


class FileWatcher:
    """
    Manages the watchdog observer thread.
    """
    def __init__(self):
        self.observer = Observer()
        self.watch = None

    def start_watching(
        self,
        directory: str,
        callback: Callable[[str], None],
        accept: Optional[Callable[[str], bool]] = None,
        debounce_seconds: float = 0.5,
    ):
        """
        Starts a background thread watching everything below directory.
        """
        path = Path(directory).resolve()
        if not path.is_dir():
            raise FileNotFoundError(f"Cannot watch non-existent directory: {directory}")

        handler = SaveEventHandler(callback, accept=accept, debounce_seconds=debounce_seconds)
        self.watch = self.observer.schedule(handler, str(path), recursive=True)
        self.observer.start()
        logger.info(f"Watching {path}")

    def stop_watching(self):
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
