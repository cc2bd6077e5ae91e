"""Running count of suspensions and the memory they are estimated to free"""

import logging
import threading
import time

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .host import Host, HostError
from .store import StateStore, StorageError

logger = logging.getLogger(__name__)

STATS_KEY = "memoryStats"
AVERAGE_TAB_MEMORY = 50 * 1024 * 1024


class UsageCounters(BaseModel):
    """Persisted counters; only reset() ever lowers them"""

    model_config = ConfigDict(populate_by_name=True)

    total_suspensions: int = Field(default=0, ge=0, alias="totalSuspensions")
    estimated_memory_saved: int = Field(default=0, ge=0, alias="estimatedMemorySaved")
    last_updated: float = Field(default_factory=time.time, alias="lastUpdated")


class UsageAccountant:
    """Owns the usage counters

    Updates are serialized by a lock so concurrent suspensions never lose
    an increment.
    """

    def __init__(self, store: StateStore, host: Host | None = None, unit_estimate: int = AVERAGE_TAB_MEMORY):
        self.store = store
        self.host = host
        self.unit_estimate = unit_estimate
        self._lock = threading.Lock()

    def _load(self) -> UsageCounters:
        try:
            data = self.store.get(STATS_KEY)
        except StorageError as e:
            logger.warning("Cannot load usage counters: %s", e)
            return UsageCounters()

        if data is None:
            return UsageCounters()
        try:
            return UsageCounters.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed usage counters: %s", e)
            return UsageCounters()

    def _save(self, counters: UsageCounters) -> None:
        self.store.set(STATS_KEY, counters.model_dump(by_alias=True))

    def counters(self) -> UsageCounters:
        with self._lock:
            return self._load()

    def record_suspension(self) -> UsageCounters:
        """Count one suspension and add one unit estimate of reclaimed memory"""
        with self._lock:
            counters = self._load()
            counters.total_suspensions += 1
            counters.estimated_memory_saved += self.unit_estimate
            counters.last_updated = time.time()
            try:
                self._save(counters)
            except StorageError as e:
                logger.warning("Cannot persist usage counters: %s", e)
            return counters

    def reset(self) -> UsageCounters:
        """Zero the counters, keeping the last update time"""
        with self._lock:
            counters = self._load()
            counters.total_suspensions = 0
            counters.estimated_memory_saved = 0
            self._save(counters)
            return counters

    async def current_stats(self, live_suspended_count: int) -> dict:
        """Counters plus a point-in-time estimate for the tabs suspended now

        Host memory figures are added when the host can report them and
        silently omitted otherwise.
        """
        stats = self.counters().model_dump(by_alias=True)
        stats["currentSuspendedTabs"] = live_suspended_count
        stats["estimatedCurrentSavings"] = live_suspended_count * self.unit_estimate

        if self.host is None:
            return stats

        try:
            memory = await self.host.memory_info()
        except (HostError, OSError) as e:
            logger.debug("Memory info not available: %s", e)
            memory = None

        if memory is not None and memory.capacity > 0:
            stats["currentAvailableMemory"] = memory.available_capacity
            stats["totalMemory"] = memory.capacity
            used = memory.capacity - memory.available_capacity
            stats["memoryUsagePercent"] = round(used / memory.capacity * 100, 1)

        return stats
