"""Reload config.yaml when it changes on disk

Uses watchdog's OS-level events (inotify, FSEvents, ReadDirectoryChanges)
with a debounce, since editors often write a file several times in a row.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import SuspenderConfig

logger = logging.getLogger(__name__)


class ConfigWatcher:
    """Watch the daemon configuration file and hand over each new version

    Attributes:
        config_file: Path to config.yaml
        on_change: Async callback receiving the reloaded configuration
        debounce_seconds: Quiet period after the last change before reloading
    """

    def __init__(
        self,
        config_file: Path,
        on_change: Callable[[SuspenderConfig], Awaitable[None]],
        debounce_seconds: float = 1.0,
    ):
        self.config_file = Path(config_file)
        self.on_change = on_change
        self.debounce_seconds = debounce_seconds

        self._observer: Any = None
        self._handler: _DebounceHandler | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        self._running = True
        loop = asyncio.get_running_loop()
        self._handler = _DebounceHandler(
            target_file=self.config_file,
            callback=self._reload,
            debounce_seconds=self.debounce_seconds,
            loop=loop,
        )

        self._observer = Observer()
        self._observer.schedule(self._handler, str(self.config_file.parent), recursive=False)
        try:
            self._observer.start()
        except OSError:
            logger.warning(
                "Failed to start file watcher for %s (inotify limit reached). Config changes need a restart.",
                self.config_file,
            )
            self._observer = None
            self._handler = None
            self._running = False

    async def _reload(self) -> None:
        config = SuspenderConfig.from_file(self.config_file)
        logger.info("Configuration reloaded from %s", self.config_file)
        try:
            await self.on_change(config)
        except Exception:
            logger.exception("Failed to apply reloaded configuration")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._handler:
            await self._handler.cancel_pending()

        observer = self._observer
        if observer:
            observer.stop()
            observer.join(timeout=2.0)
            self._observer = None
            self._handler = None


class _DebounceHandler(FileSystemEventHandler):
    """Internal handler that debounces file change events."""

    def __init__(
        self,
        target_file: Path,
        callback: Callable[[], Awaitable[None]],
        debounce_seconds: float,
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__()
        self.target_file = target_file
        self.callback = callback
        self.debounce_seconds = debounce_seconds
        self.loop = loop
        self._debounce_task: asyncio.Task | None = None

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if Path(str(event.src_path)).resolve() != self.target_file.resolve():
            return
        # Observer runs in its own thread
        self.loop.call_soon_threadsafe(self._schedule_callback)

    def on_created(self, event: FileSystemEvent) -> None:
        self.on_modified(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Atomic saves write a temp file and rename it over the target
        if Path(str(event.dest_path)).resolve() == self.target_file.resolve():
            self.loop.call_soon_threadsafe(self._schedule_callback)

    def _schedule_callback(self) -> None:
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = self.loop.create_task(self._debounced_callback())

    async def _debounced_callback(self) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
            await self.callback()
        except asyncio.CancelledError:
            pass

    async def cancel_pending(self) -> None:
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
            try:
                await self._debounce_task
            except asyncio.CancelledError:
                pass
