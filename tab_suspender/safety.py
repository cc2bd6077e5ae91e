"""Content-side safety check before suspending a tab"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from .host import ContentUnreachable, Host, HostError

logger = logging.getLogger(__name__)

SAFETY_REQUEST = {"action": "checkSuspensionSafety"}


class SafetyStatus(str, Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class SafetyVerdict:
    """Result of one safety round trip

    ``reasons`` names the signals that made the tab unsafe
    (form_data, active_media, loading, visible).
    """

    status: SafetyStatus
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def suspendable(self) -> bool:
        """Only an explicit unsafe answer blocks suspension"""
        return self.status is not SafetyStatus.UNSAFE


class SafetyVerifier:
    """Ask a tab's content whether suspending it now would lose anything

    One round trip per check, no retries. The transport reports failures
    as UNREACHABLE; collapsing that to "safe" is left to the caller.
    """

    def __init__(self, host: Host, timeout: float = 2.0):
        self.host = host
        self.timeout = timeout

    async def check(self, tab_id: str) -> SafetyVerdict:
        try:
            response = await asyncio.wait_for(
                self.host.send_message(tab_id, dict(SAFETY_REQUEST), timeout=self.timeout),
                timeout=self.timeout,
            )
        except (ContentUnreachable, HostError, asyncio.TimeoutError) as e:
            logger.debug("Tab %s did not answer the safety check: %r", tab_id, e)
            return SafetyVerdict(SafetyStatus.UNREACHABLE)

        if not isinstance(response, dict) or "error" in response:
            logger.debug("Tab %s gave no usable safety answer: %r", tab_id, response)
            return SafetyVerdict(SafetyStatus.UNREACHABLE)

        reasons = []
        if response.get("hasFormData"):
            reasons.append("form_data")
        if response.get("hasActiveMedia"):
            reasons.append("active_media")
        if response.get("isLoading"):
            reasons.append("loading")
        if response.get("isVisible"):
            reasons.append("visible")

        if reasons:
            return SafetyVerdict(SafetyStatus.UNSAFE, tuple(reasons))
        return SafetyVerdict(SafetyStatus.SAFE)

    async def is_safe(self, tab_id: str) -> bool:
        """True unless the content positively reported a reason not to suspend"""
        verdict = await self.check(tab_id)
        if not verdict.suspendable:
            logger.info("Tab %s is not safe to suspend: %s", tab_id, ", ".join(verdict.reasons))
        return verdict.suspendable
