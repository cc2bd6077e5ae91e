"""Tests for suspension counters and memory statistics"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tab_suspender.host import HostError, MemoryInfo
from tab_suspender.store import StorageError
from tab_suspender.usage import AVERAGE_TAB_MEMORY, STATS_KEY, UsageAccountant


def test_fresh_counters_are_zero(store):
    counters = UsageAccountant(store).counters()
    assert counters.total_suspensions == 0
    assert counters.estimated_memory_saved == 0


def test_record_suspension_accumulates(store):
    usage = UsageAccountant(store)
    usage.record_suspension()
    counters = usage.record_suspension()

    assert counters.total_suspensions == 2
    assert counters.estimated_memory_saved == 2 * AVERAGE_TAB_MEMORY
    stored = store.get(STATS_KEY)
    assert stored["totalSuspensions"] == 2
    assert stored["estimatedMemorySaved"] == 2 * AVERAGE_TAB_MEMORY


def test_record_suspension_survives_store_failure(store, monkeypatch):
    """A failed write is logged, the suspension still counts in memory"""

    def fail(key, value):
        raise StorageError("disk full")

    monkeypatch.setattr(store, "set", fail)
    counters = UsageAccountant(store).record_suspension()
    assert counters.total_suspensions == 1


def test_reset_keeps_last_updated(store):
    usage = UsageAccountant(store)
    before = usage.record_suspension()
    after = usage.reset()
    assert after.total_suspensions == 0
    assert after.estimated_memory_saved == 0
    assert after.last_updated == before.last_updated


def test_malformed_counters_start_over(store):
    store.set(STATS_KEY, {"totalSuspensions": -3})
    assert UsageAccountant(store).counters().total_suspensions == 0


@pytest.mark.asyncio
async def test_current_stats_without_host(store):
    usage = UsageAccountant(store, unit_estimate=100)
    usage.record_suspension()

    stats = await usage.current_stats(3)

    assert stats["totalSuspensions"] == 1
    assert stats["estimatedMemorySaved"] == 100
    assert stats["currentSuspendedTabs"] == 3
    assert stats["estimatedCurrentSavings"] == 300
    assert "totalMemory" not in stats


@pytest.mark.asyncio
async def test_current_stats_with_memory(store):
    host = MagicMock()
    host.memory_info = AsyncMock(return_value=MemoryInfo(capacity=1000, available_capacity=250))

    stats = await UsageAccountant(store, host).current_stats(0)

    assert stats["totalMemory"] == 1000
    assert stats["currentAvailableMemory"] == 250
    assert stats["memoryUsagePercent"] == 75.0


@pytest.mark.asyncio
async def test_current_stats_memory_error_is_omitted(store):
    host = MagicMock()
    host.memory_info = AsyncMock(side_effect=HostError("no memory api"))

    stats = await UsageAccountant(store, host).current_stats(1)

    assert stats["currentSuspendedTabs"] == 1
    assert "currentAvailableMemory" not in stats
    assert "memoryUsagePercent" not in stats
