"""Suspension policy persisted in the state store"""

import logging
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .rules import DomainRule
from .store import StateStore, StorageError

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
WHITELIST_KEY = "whitelist"

DEFAULT_TIMEOUT_MINUTES = 5
MIN_TIMEOUT_MINUTES = 1
MAX_TIMEOUT_MINUTES = 6000  # 100 hours

DEFAULT_WHITELIST = [
    "mail.google.com",
    "outlook.live.com",
    "outlook.office.com",
    "calendar.google.com",
    "meet.google.com",
    "zoom.us",
    "teams.microsoft.com",
    "slack.com",
    "discord.com",
    "music.youtube.com",
    "spotify.com",
    "netflix.com",
    "twitch.tv",
]


def normalize_minutes(value) -> int:
    """Coerce a user-supplied minute count into the accepted range

    Non-numeric input becomes the default, fractions are rounded and the
    result is clamped to [MIN_TIMEOUT_MINUTES, MAX_TIMEOUT_MINUTES].
    """
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT_MINUTES
    if minutes != minutes:  # NaN
        return DEFAULT_TIMEOUT_MINUTES
    minutes = round(minutes)
    return max(MIN_TIMEOUT_MINUTES, min(MAX_TIMEOUT_MINUTES, minutes))


def extract_domain(value: str) -> str:
    """Reduce a domain or URL to a lowercased hostname

    Examples:
        "Example.com" -> "example.com"
        "https://www.example.com/page" -> "www.example.com"
        "example.com/page" -> "example.com"
    """
    value = value.strip()
    if "/" not in value and ":" not in value:
        return value.lower()

    candidate = value if value.startswith("http") else f"https://{value}"
    try:
        hostname = urlsplit(candidate).hostname
    except ValueError:
        hostname = None
    if hostname:
        return hostname

    stripped = value.lower()
    for prefix in ("https://", "http://"):
        if stripped.startswith(prefix):
            stripped = stripped[len(prefix):]
    return stripped.split("/")[0]


class DomainRuleSetting(BaseModel):
    """Stored form of a domain rule"""

    domain: str
    minutes: float = Field(gt=0)

    @field_validator("domain")
    @classmethod
    def clean_domain(cls, value: str) -> str:
        domain = extract_domain(value)
        if not domain:
            raise ValueError("domain must not be empty")
        return domain

    def to_rule(self) -> DomainRule:
        return DomainRule(domain=self.domain, timeout_seconds=self.minutes * 60)


class Settings(BaseModel):
    """Global timeout plus ordered per-domain overrides"""

    model_config = ConfigDict(populate_by_name=True)

    global_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MINUTES * 60 * 1000, gt=0, alias="globalTimeout")
    domain_rules: list[DomainRuleSetting] = Field(default_factory=list, alias="domainRules")

    @property
    def global_timeout_seconds(self) -> float:
        return self.global_timeout_ms / 1000

    @property
    def rules(self) -> list[DomainRule]:
        return [rule.to_rule() for rule in self.domain_rules]

    @classmethod
    def from_stored(cls, data) -> "Settings":
        """Build settings from a stored blob, falling back to defaults

        Individual malformed rules are dropped; anything else malformed
        yields the defaults.
        """
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring malformed settings blob: %r", data)
            return cls()

        rules = []
        raw_rules = data.get("domainRules", [])
        if isinstance(raw_rules, list):
            for raw in raw_rules:
                try:
                    rules.append(DomainRuleSetting.model_validate(raw))
                except ValidationError as e:
                    logger.warning("Dropping malformed domain rule %r: %s", raw, e)

        try:
            timeout = data.get("globalTimeout", DEFAULT_TIMEOUT_MINUTES * 60 * 1000)
            return cls(globalTimeout=timeout, domainRules=rules)
        except ValidationError as e:
            logger.warning("Malformed global timeout in settings: %s. Using default", e)
            return cls(domainRules=rules)

    def to_stored(self) -> dict:
        return self.model_dump(by_alias=True)


class SettingsManager:
    """Read and edit the policy: settings blob and exemption list

    Reads never raise; an unavailable or malformed store degrades to the
    documented defaults. Writes raise StorageError so the caller can tell
    the user the edit was not saved.
    """

    def __init__(self, store: StateStore):
        self.store = store

    def get_settings(self) -> Settings:
        try:
            data = self.store.get(SETTINGS_KEY)
        except StorageError as e:
            logger.warning("Cannot load settings, using defaults: %s", e)
            return Settings()
        return Settings.from_stored(data)

    def save_settings(self, settings: Settings) -> Settings:
        self.store.set(SETTINGS_KEY, settings.to_stored())
        return settings

    def update_settings(
        self,
        global_timeout_ms: int | None = None,
        domain_rules: list[dict] | None = None,
    ) -> Settings:
        """Apply a partial settings update; omitted fields keep their value"""
        settings = self.get_settings()
        if global_timeout_ms is not None:
            minutes = normalize_minutes(global_timeout_ms / 60000)
            settings.global_timeout_ms = minutes * 60 * 1000
        if domain_rules is not None:
            settings.domain_rules = [DomainRuleSetting.model_validate(rule) for rule in domain_rules]
        return self.save_settings(settings)

    def add_domain_rule(self, domain: str, minutes) -> Settings:
        """Add a rule, or update the minutes of the rule for the same domain in place"""
        rule = DomainRuleSetting(domain=domain, minutes=normalize_minutes(minutes))
        settings = self.get_settings()
        for existing in settings.domain_rules:
            if existing.domain == rule.domain:
                existing.minutes = rule.minutes
                break
        else:
            settings.domain_rules.append(rule)
        return self.save_settings(settings)

    def remove_domain_rule(self, domain: str) -> Settings:
        domain = extract_domain(domain)
        settings = self.get_settings()
        settings.domain_rules = [rule for rule in settings.domain_rules if rule.domain != domain]
        return self.save_settings(settings)

    def get_exemptions(self) -> list[str]:
        try:
            data = self.store.get(WHITELIST_KEY)
        except StorageError as e:
            logger.warning("Cannot load exemptions, using defaults: %s", e)
            return list(DEFAULT_WHITELIST)

        if data is None:
            return list(DEFAULT_WHITELIST)
        if not isinstance(data, list) or not all(isinstance(d, str) for d in data):
            logger.warning("Ignoring malformed exemption list: %r", data)
            return list(DEFAULT_WHITELIST)
        return data

    def add_exemption(self, domain_or_url: str) -> list[str]:
        domain = extract_domain(domain_or_url)
        exemptions = self.get_exemptions()
        if domain and domain not in exemptions:
            exemptions.append(domain)
            self.store.set(WHITELIST_KEY, exemptions)
            logger.info("Added %s to exemptions", domain)
        return exemptions

    def remove_exemption(self, domain_or_url: str) -> list[str]:
        domain = extract_domain(domain_or_url)
        exemptions = self.get_exemptions()
        if domain in exemptions:
            exemptions.remove(domain)
            self.store.set(WHITELIST_KEY, exemptions)
            logger.info("Removed %s from exemptions", domain)
        return exemptions

    def reset_exemptions(self) -> list[str]:
        exemptions = list(DEFAULT_WHITELIST)
        self.store.set(WHITELIST_KEY, exemptions)
        return exemptions
