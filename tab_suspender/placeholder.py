"""Placeholder locations that stand in for suspended tabs

The original location, title and icon travel in the placeholder's own
query string, so a suspended tab can be restored even if the daemon
restarted and the snapshot store was lost.
"""

from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode


@dataclass(frozen=True)
class PlaceholderParams:
    url: str
    title: str = ""
    favicon: str = ""


class PlaceholderCodec:
    """Encode and decode placeholder locations under a fixed base URL"""

    def __init__(self, base_url: str):
        self.base_url = base_url.split("?", 1)[0]

    def encode(self, url: str, title: str = "", favicon: str | None = None) -> str:
        query = urlencode({"url": url, "title": title or "", "favicon": favicon or ""})
        return f"{self.base_url}?{query}"

    def is_placeholder(self, location: str | None) -> bool:
        if not location:
            return False
        return location == self.base_url or location.startswith(self.base_url + "?")

    def decode(self, location: str | None) -> PlaceholderParams | None:
        """Recover the original tab from a placeholder location

        Returns None when location is not a placeholder or carries no url.
        """
        if not self.is_placeholder(location):
            return None
        _, _, query = location.partition("?")
        params = parse_qs(query, keep_blank_values=True)
        url = params.get("url", [""])[0]
        if not url:
            return None
        return PlaceholderParams(
            url=url,
            title=params.get("title", [""])[0],
            favicon=params.get("favicon", [""])[0],
        )
