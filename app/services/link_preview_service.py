"""Open Graph link previews for URLs shared in chat."""

from typing import Dict, Optional
from urllib.parse import urlparse

import cachetools
import httpx
from bs4 import BeautifulSoup

from app.utils.exceptions import ExternalServiceError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


def _meta(soup: BeautifulSoup, name: str) -> Optional[str]:
    # Sites use either property= or name= for Open Graph tags.
    tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


def parse_preview(page: str, url: str) -> Dict[str, str]:
    soup = BeautifulSoup(page, "html.parser")
    title = soup.title.string.strip() if soup.title and soup.title.string else ""
    return {
        "title": _meta(soup, "og:title") or title or url,
        "description": _meta(soup, "og:description") or _meta(soup, "description") or "",
        "image": _meta(soup, "og:image") or "",
        "url": url,
    }


class LinkPreviewService:
    def __init__(self, cache_ttl: int = 3600, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport
        self._cache = cachetools.TTLCache(maxsize=512, ttl=cache_ttl)

    async def fetch(self, url: str) -> Dict[str, str]:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("A valid http(s) URL is required", details={"url": url})
        if url in self._cache:
            return self._cache[url]

        try:
            async with httpx.AsyncClient(
                timeout=10.0, follow_redirects=True, transport=self.transport
            ) as client:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Link preview fetch failed for {url}: {e}")
            raise ExternalServiceError("Failed to fetch link preview", details={"url": url}) from e

        preview = parse_preview(response.text, url)
        self._cache[url] = preview
        return preview
