"""Suspension controller: decides which tabs to suspend and restores them"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .activity import ActivityTracker
from .host import ContentUnreachable, Host, HostError, HostEvent, HostEventType, TabInfo
from .placeholder import PlaceholderCodec
from .rules import ResolutionKind, is_privileged, resolve
from .safety import SafetyStatus, SafetyVerifier
from .settings import Settings, SettingsManager
from .snapshots import ScrollOffset, SnapshotStore
from .store import StateStore, StorageError
from .usage import AVERAGE_TAB_MEMORY, UsageAccountant

logger = logging.getLogger(__name__)


class TabState(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    RESTORING = "restoring"


class Reason(str, Enum):
    """Why a tab was or was not suspended"""

    FOREGROUND = "foreground"
    SUSPENDED = "suspended"
    RESTORING = "restoring"
    PRIVILEGED = "privileged"
    EXEMPT = "exempt"
    UNRESOLVABLE = "unresolvable"
    PINNED = "pinned"
    AUDIBLE = "audible"
    RECENTLY_ACTIVE = "recently_active"
    UNSAFE = "unsafe"
    ELIGIBLE = "eligible"


@dataclass
class Decision:
    tab_id: str
    reason: Reason
    idle_seconds: float | None = None
    threshold_seconds: float | None = None
    details: tuple[str, ...] = ()

    @property
    def eligible(self) -> bool:
        return self.reason is Reason.ELIGIBLE


@dataclass
class ScanReport:
    """What one scan looked at and did"""

    started_at: datetime = field(default_factory=datetime.now)
    evaluated: int = 0
    suspended: list[str] = field(default_factory=list)
    skipped: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def skip(self, reason: Reason) -> None:
        self.skipped[reason.value] = self.skipped.get(reason.value, 0) + 1


class SuspensionController:
    """Orchestrates rules, activity, safety checks, snapshots and accounting

    Only one scan runs at a time; a scan requested while another is in
    progress is skipped rather than queued. Restores may run concurrently
    with a scan: they reset the tab's activity before navigating and mark
    the tab as restoring, so the scan never re-suspends it.
    """

    def __init__(
        self,
        host: Host,
        store: StateStore,
        codec: PlaceholderCodec,
        tracker: ActivityTracker | None = None,
        safety_timeout: float = 2.0,
        scroll_restore_delay: float = 1.0,
        unit_estimate: int = AVERAGE_TAB_MEMORY,
    ):
        self.host = host
        self.store = store
        self.codec = codec
        self.tracker = tracker if tracker is not None else ActivityTracker()
        self.settings_manager = SettingsManager(store)
        self.verifier = SafetyVerifier(host, timeout=safety_timeout)
        self.snapshots = SnapshotStore(store, host, scroll_timeout=safety_timeout)
        self.usage = UsageAccountant(store, host, unit_estimate=unit_estimate)
        self.scroll_restore_delay = scroll_restore_delay

        self._scan_lock = asyncio.Lock()
        self._restoring: set[str] = set()
        self._scroll_tasks: dict[str, asyncio.Task] = {}

    def state_of(self, tab: TabInfo) -> TabState:
        if tab.id in self._restoring:
            return TabState.RESTORING
        if tab.discarded or self.codec.is_placeholder(tab.url):
            return TabState.SUSPENDED
        return TabState.ACTIVE

    def _observe(self, tab: TabInfo) -> None:
        """Start the idle clock of a tab seen for the first time without a host access time"""
        if tab.last_accessed is None and self.tracker.last_active(tab.id) is None:
            self.tracker.mark_active(tab.id)

    @property
    def scanning(self) -> bool:
        return self._scan_lock.locked()

    async def scan(self) -> ScanReport | None:
        """Evaluate every live tab once and suspend the eligible ones

        Policy is re-read on every scan so edits apply without a restart.

        Returns:
            The scan report, or None if a scan was already running
        """
        if self._scan_lock.locked():
            logger.debug("Scan already in progress, skipping")
            return None

        async with self._scan_lock:
            report = ScanReport()
            settings = self.settings_manager.get_settings()
            exemptions = self.settings_manager.get_exemptions()

            try:
                tabs = await self.host.list_tabs()
            except HostError as e:
                logger.warning("Cannot enumerate tabs: %s", e)
                report.errors.append(str(e))
                return report

            for tab in tabs:
                report.evaluated += 1
                self._observe(tab)
                try:
                    decision = await self.evaluate(tab, settings, exemptions)
                    if not decision.eligible:
                        report.skip(decision.reason)
                        continue
                    if await self._suspend(tab, decision):
                        report.suspended.append(tab.id)
                except Exception as e:
                    logger.exception("Error evaluating tab %s", tab.id)
                    report.errors.append(f"{tab.id}: {e}")

            if report.suspended:
                logger.info("Scan suspended %d of %d tabs", len(report.suspended), report.evaluated)
            return report

    async def evaluate(
        self,
        tab: TabInfo,
        settings: Settings | None = None,
        exemptions: list[str] | None = None,
        check_idle: bool = True,
    ) -> Decision:
        """Decide whether tab may be suspended right now

        Cheap local checks come first; the content round trip only happens
        for tabs that are otherwise eligible.
        """
        if settings is None:
            settings = self.settings_manager.get_settings()
        if exemptions is None:
            exemptions = self.settings_manager.get_exemptions()

        if tab.active:
            return Decision(tab.id, Reason.FOREGROUND)

        state = self.state_of(tab)
        if state is TabState.SUSPENDED:
            return Decision(tab.id, Reason.SUSPENDED)
        if state is TabState.RESTORING:
            return Decision(tab.id, Reason.RESTORING)

        if is_privileged(tab.url):
            return Decision(tab.id, Reason.PRIVILEGED)

        resolution = resolve(tab.url, exemptions, settings.rules, settings.global_timeout_seconds)
        if resolution.kind is ResolutionKind.UNRESOLVABLE:
            logger.debug("Cannot classify %r, not suspending tab %s", tab.url, tab.id)
            return Decision(tab.id, Reason.UNRESOLVABLE)
        if resolution.kind is ResolutionKind.EXEMPT:
            return Decision(tab.id, Reason.EXEMPT)

        if tab.pinned:
            return Decision(tab.id, Reason.PINNED)
        if tab.audible:
            return Decision(tab.id, Reason.AUDIBLE)

        threshold = resolution.timeout_seconds
        idle = self.tracker.idle_duration(tab.id, fallback=tab.last_accessed)
        if check_idle and idle < threshold:
            return Decision(tab.id, Reason.RECENTLY_ACTIVE, idle, threshold)

        verdict = await self.verifier.check(tab.id)
        # An unreachable tab has no responder to lose state in; only an explicit answer blocks
        if verdict.status is SafetyStatus.UNSAFE:
            logger.info("Tab %s is not safe to suspend: %s", tab.id, ", ".join(verdict.reasons))
            return Decision(tab.id, Reason.UNSAFE, idle, threshold, verdict.reasons)

        if check_idle and self.tracker.idle_duration(tab.id, fallback=tab.last_accessed) < threshold:
            # Became active while the safety round trip was in flight
            return Decision(tab.id, Reason.RECENTLY_ACTIVE, idle, threshold)
        if tab.id in self._restoring:
            return Decision(tab.id, Reason.RESTORING)

        return Decision(tab.id, Reason.ELIGIBLE, idle, threshold)

    async def _suspend(self, tab: TabInfo, decision: Decision) -> bool:
        """Snapshot tab, then replace it with its placeholder

        The navigation is the last step that can fail; accounting happens
        only after it succeeded. Any failure leaves the tab untouched for
        the next scan.
        """
        try:
            await self.snapshots.save(tab)
        except StorageError as e:
            logger.warning("Snapshot of tab %s failed, leaving it active: %s", tab.id, e)
            return False

        placeholder = self.codec.encode(tab.url, tab.title, tab.fav_icon_url)
        try:
            await self.host.navigate(tab.id, placeholder)
        except HostError as e:
            logger.warning("Could not suspend tab %s: %s", tab.id, e)
            return False

        self.usage.record_suspension()
        logger.info(
            "Suspended tab %s (%s) after %.0fs idle",
            tab.id,
            tab.title or tab.url,
            decision.idle_seconds or 0,
        )
        return True

    async def suspend_now(self, tab_id: str) -> Decision:
        """Suspend one tab immediately, ignoring its idle time

        Exemptions, privileged locations and the safety check still apply.
        """
        tab = await self.host.get_tab(tab_id)
        if tab is None:
            raise HostError(f"No such tab: {tab_id}")

        decision = await self.evaluate(tab, check_idle=False)
        if decision.eligible and not await self._suspend(tab, decision):
            raise HostError(f"Suspending tab {tab_id} failed")
        return decision

    async def restore(self, tab_id: str, original_url: str | None = None) -> bool:
        """Navigate a suspended tab back to its original location

        Args:
            tab_id: Tab to restore
            original_url: Location to go back to; when omitted it is read
                from the tab's placeholder location

        Returns:
            True if the navigation was issued
        """
        # Reset activity before anything else so a concurrent scan sees the tab as fresh
        self.tracker.mark_active(tab_id)
        self._restoring.add(tab_id)
        try:
            if not original_url:
                tab = await self.host.get_tab(tab_id)
                params = self.codec.decode(tab.url if tab else None)
                if params is None:
                    logger.warning("Tab %s has no location to restore", tab_id)
                    return False
                original_url = params.url

            snapshot = self.snapshots.load(original_url)
            await self.host.navigate(tab_id, original_url)
            self.tracker.mark_active(tab_id)
            logger.info("Restored tab %s: %s", tab_id, original_url)

            if snapshot and (snapshot.scroll_position.x or snapshot.scroll_position.y):
                self._schedule_scroll_restore(tab_id, snapshot.scroll_position)
            return True
        except HostError as e:
            logger.warning("Error restoring tab %s: %s", tab_id, e)
            return False
        finally:
            self._restoring.discard(tab_id)

    def _schedule_scroll_restore(self, tab_id: str, position: ScrollOffset) -> None:
        self._cancel_scroll_restore(tab_id)
        task = asyncio.create_task(self._restore_scroll(tab_id, position))
        self._scroll_tasks[tab_id] = task
        task.add_done_callback(functools.partial(self._scroll_task_done, tab_id))

    def _scroll_task_done(self, tab_id: str, task: asyncio.Task) -> None:
        if self._scroll_tasks.get(tab_id) is task:
            del self._scroll_tasks[tab_id]

    async def _restore_scroll(self, tab_id: str, position: ScrollOffset) -> None:
        await asyncio.sleep(self.scroll_restore_delay)
        message = {"action": "restoreScroll", "position": position.model_dump()}
        try:
            await self.host.send_message(tab_id, message, timeout=self.verifier.timeout)
        except (ContentUnreachable, HostError) as e:
            # Page may not have a responder yet; scroll restore is best effort
            logger.debug("Scroll restore for tab %s not delivered: %r", tab_id, e)

    def _cancel_scroll_restore(self, tab_id: str) -> None:
        task = self._scroll_tasks.pop(tab_id, None)
        if task and not task.done():
            task.cancel()

    def notify_activity(self, tab_id: str) -> None:
        self.tracker.mark_active(tab_id)

    def tab_removed(self, tab_id: str) -> None:
        self.tracker.forget(tab_id)
        self._cancel_scroll_restore(tab_id)

    async def handle_event(self, event: HostEvent) -> None:
        """Feed one host activity signal into the tracker"""
        if event.type is HostEventType.REMOVED:
            if event.tab_id:
                self.tab_removed(event.tab_id)
            return

        if event.type is HostEventType.USER_ACTIVE:
            try:
                tabs = await self.host.list_tabs()
            except HostError as e:
                logger.debug("Cannot find foreground tab: %s", e)
                return
            for tab in tabs:
                if tab.active:
                    self.tracker.mark_active(tab.id)
            return

        if event.tab_id:
            self.tracker.mark_active(event.tab_id)

    async def suspended_count(self) -> int:
        try:
            tabs = await self.host.list_tabs()
        except HostError as e:
            logger.warning("Cannot enumerate tabs: %s", e)
            return 0
        return sum(1 for tab in tabs if self.codec.is_placeholder(tab.url))

    async def memory_stats(self) -> dict:
        return await self.usage.current_stats(await self.suspended_count())

    async def close(self) -> None:
        tasks = list(self._scroll_tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._scroll_tasks.clear()
