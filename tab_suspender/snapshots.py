"""Snapshots of suspended tabs, used to restore scroll position"""

import asyncio
import logging
import time

from pydantic import BaseModel, Field, ValidationError

from .host import ContentUnreachable, Host, HostError, TabInfo
from .store import StateStore, StorageError

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "snapshot_"
DEFAULT_RETENTION_SECONDS = 7 * 24 * 60 * 60
SCROLL_REQUEST = {"action": "getScrollPosition"}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def url_hash(url: str) -> str:
    """Stable base-36 hash of a location

    32-bit multiply-by-31 string hash over UTF-16 code units, so keys stay
    identical across process restarts and with stores written by earlier
    versions.
    """
    h = 0
    data = url.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    h = abs(h)

    if h == 0:
        return "0"
    digits = []
    while h:
        h, rem = divmod(h, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def snapshot_key(url: str) -> str:
    return SNAPSHOT_PREFIX + url_hash(url)


class ScrollOffset(BaseModel):
    x: float = 0
    y: float = 0


class SuspensionSnapshot(BaseModel):
    """Recovery data captured just before a tab is suspended"""

    url: str
    title: str = ""
    fav_icon_url: str | None = None
    scroll_position: ScrollOffset = Field(default_factory=ScrollOffset)
    captured_at: float = Field(default_factory=time.time)


class SnapshotStore:
    """Save, load and expire suspension snapshots

    Keyed by a hash of the location. A hash collision can only restore the
    wrong scroll offset; the navigation target always comes from the
    location itself.
    """

    def __init__(self, store: StateStore, host: Host | None = None, scroll_timeout: float = 2.0):
        self.store = store
        self.host = host
        self.scroll_timeout = scroll_timeout

    async def _scroll_offset(self, tab_id: str) -> ScrollOffset:
        if self.host is None:
            return ScrollOffset()
        try:
            response = await asyncio.wait_for(
                self.host.send_message(tab_id, dict(SCROLL_REQUEST), timeout=self.scroll_timeout),
                timeout=self.scroll_timeout,
            )
        except (ContentUnreachable, HostError, asyncio.TimeoutError) as e:
            logger.debug("No scroll position for tab %s: %r", tab_id, e)
            return ScrollOffset()

        try:
            return ScrollOffset.model_validate(response.get("position") or {})
        except (AttributeError, ValidationError):
            return ScrollOffset()

    async def save(self, tab: TabInfo) -> SuspensionSnapshot:
        """Capture and store a snapshot of tab, replacing any for the same location

        Raises:
            StorageError: if the snapshot could not be written
        """
        snapshot = SuspensionSnapshot(
            url=tab.url or "",
            title=tab.title,
            fav_icon_url=tab.fav_icon_url,
            scroll_position=await self._scroll_offset(tab.id),
        )
        self.store.set(snapshot_key(snapshot.url), snapshot.model_dump())
        return snapshot

    def load(self, url: str) -> SuspensionSnapshot | None:
        """Snapshot for url, or None if absent or unreadable"""
        try:
            data = self.store.get(snapshot_key(url))
        except StorageError as e:
            logger.warning("Cannot load snapshot for %s: %s", url, e)
            return None

        if data is None:
            return None
        try:
            return SuspensionSnapshot.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed snapshot for %s: %s", url, e)
            return None

    def clear(self, url: str) -> None:
        try:
            self.store.delete(snapshot_key(url))
        except StorageError as e:
            logger.warning("Cannot clear snapshot for %s: %s", url, e)

    def purge_older_than(self, max_age_seconds: float = DEFAULT_RETENTION_SECONDS, now: float | None = None) -> int:
        """Remove snapshots captured more than max_age_seconds ago

        Best effort: storage failures are logged and count as nothing removed.

        Returns:
            Number of snapshots removed
        """
        if now is None:
            now = time.time()

        try:
            keys = self.store.keys(prefix=SNAPSHOT_PREFIX)
        except StorageError as e:
            logger.warning("Snapshot cleanup skipped: %s", e)
            return 0

        expired = []
        for key in keys:
            try:
                data = self.store.get(key)
            except StorageError:
                continue
            captured_at = data.get("captured_at") if isinstance(data, dict) else None
            if isinstance(captured_at, (int, float)) and now - captured_at > max_age_seconds:
                expired.append(key)

        if not expired:
            return 0

        try:
            self.store.delete(*expired)
        except StorageError as e:
            logger.warning("Snapshot cleanup failed: %s", e)
            return 0

        logger.info("Cleaned %d old tab snapshots", len(expired))
        return len(expired)
