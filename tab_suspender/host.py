"""Boundary to the environment that owns the tabs"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from pydantic import BaseModel


class HostError(Exception):
    """Raised when the host cannot enumerate or mutate tabs"""


class ContentUnreachable(Exception):
    """Raised when a tab's content gave no substantive reply

    Covers a missing responder, a closed target and a timed-out round trip.
    Callers decide what the absence of an answer means.
    """


class TabInfo(BaseModel):
    """Last-known attributes of one tab, snapshotted at scan time"""

    id: str
    url: str | None = None
    title: str = ""
    fav_icon_url: str | None = None
    pinned: bool = False
    audible: bool = False
    discarded: bool = False
    active: bool = False
    # Host-side last access time, epoch seconds
    last_accessed: float | None = None


class MemoryInfo(BaseModel):
    """Environment-wide memory figures in bytes"""

    capacity: int
    available_capacity: int


class HostEventType(str, Enum):
    CREATED = "created"
    ACTIVATED = "activated"
    UPDATED = "updated"
    REMOVED = "removed"
    USER_ACTIVE = "user_active"


class HostEvent(BaseModel):
    """Activity signal delivered by the host

    USER_ACTIVE carries no tab id; it refers to the foreground tab.
    """

    type: HostEventType
    tab_id: str | None = None


class Host(ABC):
    """Operations consumed from the tab-owning environment"""

    @abstractmethod
    async def list_tabs(self) -> list[TabInfo]:
        """Enumerate all live tabs"""

    @abstractmethod
    async def get_tab(self, tab_id: str) -> TabInfo | None:
        """Return one tab's attributes, or None if it no longer exists"""

    @abstractmethod
    async def navigate(self, tab_id: str, url: str) -> None:
        """Point a tab at a new location

        Raises:
            HostError: if the tab is gone or the navigation was refused
        """

    @abstractmethod
    async def send_message(self, tab_id: str, message: dict[str, Any], timeout: float) -> dict[str, Any]:
        """Bounded request/response round trip to a tab's content

        Raises:
            ContentUnreachable: if the content did not answer in time or at all
        """

    async def memory_info(self) -> MemoryInfo | None:
        """Environment-wide memory, or None when not available"""
        return None

    def events(self) -> AsyncIterator[HostEvent]:
        """Stream of activity signals; hosts without events yield nothing"""
        return _no_events()

    async def close(self) -> None:
        """Release host resources"""


async def _no_events() -> AsyncIterator[HostEvent]:
    return
    yield
