"""Pytest configuration and fixtures"""

import asyncio
from typing import Any

import pytest

from tab_suspender.activity import ActivityTracker
from tab_suspender.controller import SuspensionController
from tab_suspender.host import ContentUnreachable, Host, HostError, HostEvent, MemoryInfo, TabInfo
from tab_suspender.placeholder import PlaceholderCodec
from tab_suspender.store import StateStore

PLACEHOLDER_BASE = "http://127.0.0.1:8787/suspended.html"

# Content reply that never arrives
HANG = object()

SAFE_REPLY = {"hasFormData": False, "hasActiveMedia": False, "isLoading": False}


class FakeClock:
    """Manually advanced wall clock"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHost(Host):
    """In-memory host: tabs are TabInfo models, content replies are scripted per tab

    ``content[tab_id]`` maps an action name to a reply dict, an exception
    instance to raise, or HANG. A tab without a content entry has no
    responder.
    """

    def __init__(self, tabs: list[TabInfo] | None = None):
        self.tabs: dict[str, TabInfo] = {tab.id: tab for tab in tabs or []}
        self.content: dict[str, dict[str, Any]] = {}
        self.navigations: list[tuple[str, str]] = []
        self.messages: list[tuple[str, dict]] = []
        self.fail_navigate: set[str] = set()
        self.memory: MemoryInfo | None = None
        self.event_queue: list[HostEvent] = []

    def add_tab(self, tab: TabInfo, content: dict[str, Any] | None = None) -> TabInfo:
        self.tabs[tab.id] = tab
        if content is not None:
            self.content[tab.id] = content
        return tab

    async def list_tabs(self) -> list[TabInfo]:
        return [tab.model_copy() for tab in self.tabs.values()]

    async def get_tab(self, tab_id: str) -> TabInfo | None:
        tab = self.tabs.get(tab_id)
        return tab.model_copy() if tab else None

    async def navigate(self, tab_id: str, url: str) -> None:
        if tab_id not in self.tabs or tab_id in self.fail_navigate:
            raise HostError(f"cannot navigate {tab_id}")
        self.navigations.append((tab_id, url))
        self.tabs[tab_id] = self.tabs[tab_id].model_copy(update={"url": url})

    async def send_message(self, tab_id: str, message: dict[str, Any], timeout: float) -> dict[str, Any]:
        self.messages.append((tab_id, message))
        handlers = self.content.get(tab_id)
        if handlers is None:
            raise ContentUnreachable(f"no responder in {tab_id}")

        reply = handlers.get(message["action"], {"error": "Unknown action"})
        if reply is HANG:
            await asyncio.sleep(3600)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def memory_info(self) -> MemoryInfo | None:
        return self.memory

    async def events(self):
        for event in self.event_queue:
            yield event


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state")


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def codec():
    return PlaceholderCodec(PLACEHOLDER_BASE)


@pytest.fixture
def controller(host, store, codec, clock):
    controller = SuspensionController(
        host,
        store,
        codec,
        tracker=ActivityTracker(clock=clock),
        safety_timeout=0.05,
        scroll_restore_delay=0,
    )
    assert controller.tracker._clock is clock
    return controller
