"""Requests from collaborators (popup, placeholder page, content scripts)

Each request is a tagged model keyed by ``action``; ``parse_request``
validates a raw message and ``dispatch`` routes it to the controller.
"""

import logging
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .controller import SuspensionController
from .host import HostError
from .store import StorageError

logger = logging.getLogger(__name__)


class RestoreTab(BaseModel):
    action: Literal["restoreTab"] = "restoreTab"
    tab_id: str
    url: str | None = None


class GetMemoryStats(BaseModel):
    action: Literal["getMemoryStats"] = "getMemoryStats"


class AddExemption(BaseModel):
    action: Literal["addToWhitelist"] = "addToWhitelist"
    domain: str = Field(min_length=1)


class RemoveExemption(BaseModel):
    action: Literal["removeFromWhitelist"] = "removeFromWhitelist"
    domain: str = Field(min_length=1)


class GetExemptions(BaseModel):
    action: Literal["getWhitelist"] = "getWhitelist"


class ResetExemptions(BaseModel):
    action: Literal["resetWhitelist"] = "resetWhitelist"


class UpdateSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["updateSettings"] = "updateSettings"
    global_timeout: int | None = Field(default=None, gt=0, alias="globalTimeout")
    domain_rules: list[dict[str, Any]] | None = Field(default=None, alias="domainRules")


class GetSettings(BaseModel):
    action: Literal["getSettings"] = "getSettings"


class AddDomainRule(BaseModel):
    action: Literal["addDomainRule"] = "addDomainRule"
    domain: str = Field(min_length=1)
    minutes: float


class RemoveDomainRule(BaseModel):
    action: Literal["removeDomainRule"] = "removeDomainRule"
    domain: str = Field(min_length=1)


class NotifyActivity(BaseModel):
    action: Literal["tabActivity"] = "tabActivity"
    tab_id: str


class SuspendTab(BaseModel):
    action: Literal["suspendTab"] = "suspendTab"
    tab_id: str


class ResetStats(BaseModel):
    action: Literal["resetStats"] = "resetStats"


Request = Annotated[
    RestoreTab
    | GetMemoryStats
    | AddExemption
    | RemoveExemption
    | GetExemptions
    | ResetExemptions
    | UpdateSettings
    | GetSettings
    | AddDomainRule
    | RemoveDomainRule
    | NotifyActivity
    | SuspendTab
    | ResetStats,
    Field(discriminator="action"),
]

_request_adapter = TypeAdapter(Request)


class InvalidRequest(ValueError):
    """Raised when a raw message is not a known, well-formed request"""


def parse_request(message: dict[str, Any]) -> Request:
    try:
        return _request_adapter.validate_python(message)
    except ValidationError as e:
        raise InvalidRequest(str(e)) from e


async def dispatch(controller: SuspensionController, request: Request) -> Any:
    """Execute one request and return its response payload"""
    settings = controller.settings_manager

    match request:
        case RestoreTab(tab_id=tab_id, url=url):
            return {"success": await controller.restore(tab_id, url)}
        case GetMemoryStats():
            return await controller.memory_stats()
        case AddExemption(domain=domain):
            return settings.add_exemption(domain)
        case RemoveExemption(domain=domain):
            return settings.remove_exemption(domain)
        case GetExemptions():
            return settings.get_exemptions()
        case ResetExemptions():
            return settings.reset_exemptions()
        case UpdateSettings(global_timeout=global_timeout, domain_rules=domain_rules):
            return settings.update_settings(global_timeout, domain_rules).to_stored()
        case GetSettings():
            return settings.get_settings().to_stored()
        case AddDomainRule(domain=domain, minutes=minutes):
            return settings.add_domain_rule(domain, minutes).to_stored()
        case RemoveDomainRule(domain=domain):
            return settings.remove_domain_rule(domain).to_stored()
        case NotifyActivity(tab_id=tab_id):
            controller.notify_activity(tab_id)
            return {"success": True}
        case SuspendTab(tab_id=tab_id):
            decision = await controller.suspend_now(tab_id)
            return {"success": decision.eligible, "reason": decision.reason.value}
        case ResetStats():
            return controller.usage.reset().model_dump(by_alias=True)
        case _:
            raise InvalidRequest(f"Unknown request: {request!r}")


async def handle_message(controller: SuspensionController, message: dict[str, Any]) -> Any:
    """Parse and dispatch a raw message, turning failures into an error reply

    Never raises; this is the boundary where collaborator mistakes and
    persistence failures are reported back instead of propagated.
    """
    try:
        request = parse_request(message)
    except InvalidRequest as e:
        logger.warning("Rejected message %r: %s", message.get("action") if isinstance(message, dict) else message, e)
        return {"error": f"Invalid request: {e}"}

    try:
        return await dispatch(controller, request)
    except (StorageError, HostError, ValidationError, ValueError) as e:
        logger.warning("Request %s failed: %s", request.action, e)
        return {"error": str(e)}
    except Exception as e:
        logger.exception("Error handling %s", request.action)
        return {"error": str(e)}
