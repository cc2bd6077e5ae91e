"""Rule resolution: which timeout and which exemption apply to a location

Everything here is pure. Hostnames are compared case-sensitively, so
they must already be lowercased; urllib's ``hostname`` attribute does that.
"""

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

# Locations that belong to the browser itself and are never suspended
PRIVILEGED_PREFIXES = (
    "chrome:",
    "chrome-extension:",
    "about:",
    "edge:",
    "browser:",
    "file:",
    "view-source:",
    "devtools:",
    "data:",
)


class ResolutionKind(str, Enum):
    EXEMPT = "exempt"
    TIMEOUT = "timeout"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True)
class DomainRule:
    """Per-domain override of the idle timeout"""

    domain: str
    timeout_seconds: float


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a location against the policy

    ``timeout_seconds`` is only set for TIMEOUT; ``hostname`` is None for
    UNRESOLVABLE.
    """

    kind: ResolutionKind
    hostname: str | None = None
    timeout_seconds: float | None = None


def domain_matches(hostname: str, domain: str) -> bool:
    """True if hostname is domain or one of its subdomains"""
    return hostname == domain or hostname.endswith("." + domain)


def exemption_applies(hostname: str, exempt: set[str] | list[str]) -> bool:
    return any(domain_matches(hostname, domain) for domain in exempt)


def resolve_timeout(hostname: str, domain_rules: list[DomainRule], global_timeout: float) -> float:
    """Timeout of the first matching rule, in list order, else the global one"""
    for rule in domain_rules:
        if domain_matches(hostname, rule.domain):
            return rule.timeout_seconds
    return global_timeout


def is_privileged(url: str | None) -> bool:
    """True for empty locations and browser-internal schemes"""
    if not url:
        return True
    return url.startswith(PRIVILEGED_PREFIXES)


def hostname_of(url: str | None) -> str | None:
    """Lowercased hostname of url, or None when it has none or cannot be parsed"""
    if not url:
        return None
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None


def resolve(
    url: str | None,
    exempt: set[str] | list[str],
    domain_rules: list[DomainRule],
    global_timeout: float,
) -> Resolution:
    """Resolve a location to an exemption, a timeout, or 'cannot classify'

    Exemption is checked first and short-circuits the timeout lookup.
    """
    hostname = hostname_of(url)
    if hostname is None:
        return Resolution(ResolutionKind.UNRESOLVABLE)

    if exemption_applies(hostname, exempt):
        return Resolution(ResolutionKind.EXEMPT, hostname=hostname)

    return Resolution(
        ResolutionKind.TIMEOUT,
        hostname=hostname,
        timeout_seconds=resolve_timeout(hostname, domain_rules, global_timeout),
    )
