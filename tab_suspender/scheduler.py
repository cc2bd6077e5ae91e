"""Periodic scheduling of scans, snapshot maintenance and host events"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from .config import SuspenderConfig
from .config_watcher import ConfigWatcher
from .controller import SuspensionController

logger = logging.getLogger(__name__)


class SuspensionScheduler:
    """Drive the controller on timers

    The scan timer fires every ``scan_interval_seconds``; a scan that is
    still running when the timer fires again causes that tick to be
    skipped, never a second concurrent scan. Each safety round trip is
    individually time-bounded, so a stuck tab cannot stall the timer.
    """

    def __init__(
        self,
        controller: SuspensionController,
        config: SuspenderConfig,
        config_file: Path | None = None,
    ):
        self.controller = controller
        self.config = config
        self.config_file = config_file
        self.running = False

        self.scan_handle: asyncio.Task | None = None
        self.maintenance_handle: asyncio.Task | None = None
        self.events_handle: asyncio.Task | None = None
        self.config_watcher: ConfigWatcher | None = None
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Start all loops and wait until they finish (i.e. until stop())"""
        self.running = True
        self._stopped.clear()
        logger.info("Starting suspension scheduler (scan every %.0fs)", self.config.scan_interval_seconds)

        self.scan_handle = asyncio.create_task(
            self._schedule_task("scan", self.controller.scan, lambda: self.config.scan_interval_seconds)
        )
        self.maintenance_handle = asyncio.create_task(
            self._schedule_task("maintenance", self.run_maintenance, lambda: self.config.maintenance_interval_seconds)
        )
        self.events_handle = asyncio.create_task(self._pump_events())

        if self.config_file and self.config_file.exists():
            self.config_watcher = ConfigWatcher(self.config_file, self.reload_config)
            await self.config_watcher.start()
            logger.info("Watching %s for changes", self.config_file)

        await self._stopped.wait()

    async def _schedule_task(self, name: str, task_func: Callable[[], Awaitable], interval: Callable[[], float]) -> None:
        """Run task_func, then sleep for the current interval, until stopped

        The interval is read after every run so a reloaded period applies
        from the next tick without interrupting a scan in progress.
        """
        while self.running:
            try:
                await task_func()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in %s", name)

            try:
                await asyncio.sleep(interval())
            except asyncio.CancelledError:
                break

    async def run_maintenance(self) -> int:
        """Drop snapshots past the retention window"""
        max_age = self.config.snapshot_retention_days * 24 * 60 * 60
        removed = await asyncio.to_thread(self.controller.snapshots.purge_older_than, max_age)
        if removed:
            logger.info("Removed %d expired snapshots", removed)
        return removed

    async def _pump_events(self) -> None:
        """Forward host activity signals to the controller"""
        try:
            async for event in self.controller.host.events():
                if not self.running:
                    break
                try:
                    await self.controller.handle_event(event)
                except Exception:
                    logger.exception("Error handling host event %s", event.type.value)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Host event stream failed; activity falls back to host timestamps")

    async def reload_config(self, config: SuspenderConfig) -> None:
        """Apply a new configuration; timer periods take effect from the next tick"""
        if config.scan_interval_seconds != self.config.scan_interval_seconds:
            logger.info("Scan interval changed to %.0fs", config.scan_interval_seconds)
        self.config = config
        self.controller.verifier.timeout = config.safety_timeout_seconds
        self.controller.snapshots.scroll_timeout = config.safety_timeout_seconds
        self.controller.scroll_restore_delay = config.scroll_restore_delay_seconds

    async def stop(self) -> None:
        self.running = False
        self._stopped.set()
        logger.info("Stopping suspension scheduler...")

        if self.config_watcher:
            await self.config_watcher.stop()

        handles = [h for h in (self.scan_handle, self.maintenance_handle, self.events_handle) if h]
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)

        await self.controller.close()
