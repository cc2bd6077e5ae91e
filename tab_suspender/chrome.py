"""Host backed by a Chrome/Chromium started with --remote-debugging-port

Tabs are enumerated over the DevTools HTTP endpoint. Navigation and the
content round trips use one short-lived DevTools websocket per call: the
"content responder" is a script evaluated in the page with
Runtime.evaluate, so any normal page can answer and browser-internal or
placeholder pages cannot.
"""

import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
import psutil
import websockets
from websockets.exceptions import WebSocketException

from .host import ContentUnreachable, Host, HostError, HostEvent, HostEventType, MemoryInfo, TabInfo

logger = logging.getLogger(__name__)

# Evaluated inside the page. Mirrors what a content script would answer.
CONTENT_RESPONDER = """
(() => {
  const msg = %(message)s;
  if (location.href.startsWith(%(placeholder)s)) {
    return {__unreachable: true};
  }

  function hasFormData() {
    for (const form of document.querySelectorAll('form')) {
      for (const input of form.querySelectorAll('input, textarea')) {
        if (input.type === 'hidden' || input.type === 'submit' || input.type === 'button') {
          continue;
        }
        if (input.value && input.value.trim().length > 0 && input.defaultValue !== input.value) {
          return true;
        }
      }
    }
    return false;
  }

  function hasActiveMedia() {
    for (const element of document.querySelectorAll('audio, video')) {
      if (!element.paused && !element.ended) {
        return true;
      }
    }
    return false;
  }

  switch (msg.action) {
    case 'checkSuspensionSafety':
      return {
        hasFormData: hasFormData(),
        hasActiveMedia: hasActiveMedia(),
        isLoading: document.readyState !== 'complete',
        isVisible: document.visibilityState === 'visible'
      };
    case 'getScrollPosition':
      return {position: {x: window.scrollX || 0, y: window.scrollY || 0}};
    case 'restoreScroll': {
      const p = msg.position || {};
      if (typeof p.x === 'number' && typeof p.y === 'number') {
        window.scrollTo(p.x, p.y);
      }
      return {success: true};
    }
    default:
      return {error: 'Unknown action'};
  }
})()
"""

# ValueError covers frames that are not JSON
_WS_ERRORS = (OSError, ValueError, asyncio.TimeoutError, WebSocketException)


class ChromeHost(Host):
    """Host implementation speaking the Chrome DevTools Protocol

    Attributes:
        devtools_url: Base HTTP URL of the DevTools endpoint
        placeholder_base_url: Location prefix of suspended tabs
        poll_interval: Seconds between target-list polls for events()
    """

    def __init__(
        self,
        devtools_url: str = "http://127.0.0.1:9222",
        placeholder_base_url: str = "",
        poll_interval: float = 2.0,
        request_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.devtools_url = devtools_url.rstrip("/")
        self.placeholder_base_url = placeholder_base_url
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(request_timeout))
        self._ws_urls: dict[str, str] = {}
        self._ids = itertools.count(1)

    async def _targets(self) -> list[dict[str, Any]]:
        try:
            resp = await self._client.get(f"{self.devtools_url}/json/list")
            resp.raise_for_status()
            targets = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise HostError(f"DevTools endpoint {self.devtools_url} unavailable: {e}") from e

        pages = [t for t in targets if isinstance(t, dict) and t.get("type") == "page"]
        self._ws_urls = {t["id"]: t["webSocketDebuggerUrl"] for t in pages if t.get("webSocketDebuggerUrl")}
        return pages

    @staticmethod
    def _to_tab(target: dict[str, Any], active: bool) -> TabInfo:
        return TabInfo(
            id=target["id"],
            url=target.get("url"),
            title=target.get("title", ""),
            fav_icon_url=target.get("faviconUrl"),
            active=active,
        )

    async def list_tabs(self) -> list[TabInfo]:
        # /json/list is ordered by most recent activation
        pages = await self._targets()
        return [self._to_tab(target, active=(i == 0)) for i, target in enumerate(pages)]

    async def get_tab(self, tab_id: str) -> TabInfo | None:
        for tab in await self.list_tabs():
            if tab.id == tab_id:
                return tab
        return None

    async def _ws_url(self, tab_id: str) -> str | None:
        if tab_id not in self._ws_urls:
            await self._targets()
        return self._ws_urls.get(tab_id)

    async def _call(self, ws_url: str, method: str, params: dict[str, Any]) -> dict[str, Any]:
        call_id = next(self._ids)
        async with websockets.connect(ws_url, max_size=None, open_timeout=self.request_timeout) as ws:
            await ws.send(json.dumps({"id": call_id, "method": method, "params": params}))
            while True:
                reply = json.loads(await ws.recv())
                if reply.get("id") == call_id:
                    return reply

    async def navigate(self, tab_id: str, url: str) -> None:
        ws_url = await self._ws_url(tab_id)
        if ws_url is None:
            raise HostError(f"No such tab: {tab_id}")

        try:
            reply = await asyncio.wait_for(
                self._call(ws_url, "Page.navigate", {"url": url}),
                timeout=self.request_timeout,
            )
        except _WS_ERRORS as e:
            raise HostError(f"Navigation of tab {tab_id} failed: {e!r}") from e

        if "error" in reply:
            raise HostError(f"Navigation of tab {tab_id} refused: {reply['error']}")
        error_text = reply.get("result", {}).get("errorText")
        if error_text:
            logger.debug("Tab %s navigated to an error page: %s", tab_id, error_text)

    async def send_message(self, tab_id: str, message: dict[str, Any], timeout: float) -> dict[str, Any]:
        try:
            ws_url = await self._ws_url(tab_id)
        except HostError as e:
            raise ContentUnreachable(str(e)) from e
        if ws_url is None:
            raise ContentUnreachable(f"No such tab: {tab_id}")

        expression = CONTENT_RESPONDER % {
            "message": json.dumps(message),
            "placeholder": json.dumps(self.placeholder_base_url or "\u0000"),
        }
        params = {"expression": expression, "returnByValue": True}
        try:
            reply = await asyncio.wait_for(self._call(ws_url, "Runtime.evaluate", params), timeout=timeout)
        except _WS_ERRORS as e:
            raise ContentUnreachable(f"Tab {tab_id} did not answer: {e!r}") from e

        result = reply.get("result", {})
        if "error" in reply or "exceptionDetails" in result:
            raise ContentUnreachable(f"Tab {tab_id} cannot run scripts")

        value = result.get("result", {}).get("value")
        if not isinstance(value, dict) or value.get("__unreachable"):
            raise ContentUnreachable(f"Tab {tab_id} has no responder")
        return value

    async def memory_info(self) -> MemoryInfo | None:
        try:
            memory = psutil.virtual_memory()
        except (OSError, RuntimeError) as e:
            logger.debug("psutil cannot read memory: %s", e)
            return None
        return MemoryInfo(capacity=memory.total, available_capacity=memory.available)

    async def events(self) -> AsyncIterator[HostEvent]:
        """Derive activity events by diffing successive target lists"""
        known: dict[str, str | None] = {}
        foreground: str | None = None
        first = True

        while True:
            try:
                tabs = await self.list_tabs()
            except HostError as e:
                logger.debug("Event poll failed: %s", e)
                await asyncio.sleep(self.poll_interval)
                continue

            current = {tab.id: tab.url for tab in tabs}
            if not first:
                for tab_id in current.keys() - known.keys():
                    yield HostEvent(type=HostEventType.CREATED, tab_id=tab_id)
                for tab_id in known.keys() - current.keys():
                    yield HostEvent(type=HostEventType.REMOVED, tab_id=tab_id)
                for tab_id, url in current.items():
                    if tab_id in known and known[tab_id] != url:
                        yield HostEvent(type=HostEventType.UPDATED, tab_id=tab_id)

            new_foreground = tabs[0].id if tabs else None
            if foreground and new_foreground != foreground and foreground in current:
                # Time spent on the outgoing tab counts up to the switch
                yield HostEvent(type=HostEventType.UPDATED, tab_id=foreground)
            if new_foreground:
                # Re-sent on every poll so the foreground tab stays fresh while in use
                yield HostEvent(type=HostEventType.ACTIVATED, tab_id=new_foreground)

            known = current
            foreground = new_foreground
            first = False
            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        await self._client.aclose()
