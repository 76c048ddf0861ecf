"""File watcher that reloads patients when the source CSV changes."""

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from backend.config.logging_config import get_logger

logger = get_logger(__name__)

DEBOUNCE_SECONDS = 2.0


class _CsvEventHandler(FileSystemEventHandler):
    """Watchdog handler that forwards changes of one file to the asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, target: Path, callback: Callable[[], Awaitable]):
        super().__init__()
        self._loop = loop
        self._target = target
        self._callback = callback
        self._pending: Optional[float] = None

    def _is_target(self, path: str) -> bool:
        return Path(path).resolve() == self._target

    def on_created(self, event):
        if not event.is_directory and self._is_target(event.src_path):
            self._schedule()

    def on_modified(self, event):
        if not event.is_directory and self._is_target(event.src_path):
            self._schedule()

    def on_moved(self, event):
        # Editors often save via write-to-temp + rename
        if not event.is_directory and self._is_target(event.dest_path):
            self._schedule()

    def _schedule(self):
        now = time.monotonic()
        self._pending = now
        self._loop.call_soon_threadsafe(
            self._loop.call_later,
            DEBOUNCE_SECONDS,
            lambda t=now: self._fire_if_still_pending(t),
        )

    def _fire_if_still_pending(self, scheduled_time: float):
        if self._pending == scheduled_time:
            self._pending = None
            asyncio.ensure_future(self._callback())


class PatientDataWatcher:
    """
    Monitors the patient CSV and refreshes derived state on change.

    On a (debounced) change the repository is reloaded and the insight cache is
    cleared, so no cached insight outlives the data it was generated from.
    """

    def __init__(self, repository, insight_cache=None):
        self._repository = repository
        self._insight_cache = insight_cache
        self._csv_path = Path(repository.csv_path).resolve()
        self._observer: Optional[Observer] = None
        self._lock = asyncio.Lock()

    async def _on_file_change(self):
        """Called (debounced) when the CSV is created or modified."""
        if self._lock.locked():
            logger.info("Reload already running, skipping", path=str(self._csv_path))
            return

        async with self._lock:
            try:
                count = await asyncio.to_thread(self._repository.reload)
            except Exception as e:
                logger.error(
                    "Error reloading patient data",
                    path=str(self._csv_path), error=str(e),
                    exc_info=True,
                )
                return

            if self._insight_cache is not None:
                self._insight_cache.clear()
            logger.info("Patient data reloaded after file change", count=count)

    def start(self):
        """Start watching the directory that holds the CSV."""
        directory = self._csv_path.parent
        if not directory.exists():
            logger.warning("Patient data directory missing, watcher not started", directory=str(directory))
            return

        loop = asyncio.get_event_loop()
        handler = _CsvEventHandler(loop, self._csv_path, self._on_file_change)

        self._observer = Observer()
        self._observer.schedule(handler, str(directory), recursive=False)
        self._observer.daemon = True
        self._observer.start()
        logger.info("Patient data watcher started", path=str(self._csv_path))

    def stop(self):
        """Stop the file watcher."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("Patient data watcher stopped")
