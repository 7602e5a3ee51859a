"""
Page Fetcher
Downloads a page and reduces it to plain text for GEO scoring
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from bs4 import BeautifulSoup, Comment

from sovtrack.config import get_settings
from sovtrack.errors import PageFetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchedPage:
    """Plain-text view of a fetched page"""
    url: str
    text: str
    title: str = ""
    meta_description: str = ""


class PageFetcher:
    """Implements FetchPageText(url) over httpx"""

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    NON_CONTENT_TAGS = ("script", "style", "noscript", "template")

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_chars: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.timeout = timeout or settings.PAGE_FETCH_TIMEOUT_SECONDS
        self.max_chars = max_chars or settings.PAGE_TEXT_MAX_CHARS
        self._client = client

    async def _get(self, url: str) -> httpx.Response:
        headers = {"User-Agent": self.USER_AGENT}
        if self._client is not None:
            return await self._client.get(url, headers=headers, timeout=self.timeout, follow_redirects=True)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await client.get(url, headers=headers)

    def extract(self, url: str, raw_html: str) -> FetchedPage:
        """Reduce raw HTML to title, meta description and body text"""
        soup = BeautifulSoup(raw_html, "html.parser")

        title = soup.title.get_text(" ", strip=True) if soup.title else ""
        meta = soup.find("meta", attrs={"name": lambda value: value and value.lower() == "description"})
        meta_description = (meta.get("content") or "").strip() if meta else ""

        for tag in soup(self.NON_CONTENT_TAGS):
            tag.decompose()
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()

        body = soup.body or soup
        text = " ".join(body.get_text(" ", strip=True).split())

        return FetchedPage(
            url=url,
            text=text[:self.max_chars],
            title=title,
            meta_description=meta_description,
        )

    async def fetch(self, url: str) -> FetchedPage:
        """
        Fetch a page and return its text.

        Raises:
            PageFetchError: network failure, non-2xx status, or a page with no text
        """
        try:
            response = await self._get(url)
        except httpx.TimeoutException:
            raise PageFetchError(f"Timed out fetching {url}", {"url": url})
        except httpx.RequestError as e:
            raise PageFetchError(f"Could not fetch {url}: {e}", {"url": url})

        if response.status_code >= 400:
            raise PageFetchError(
                f"Fetching {url} returned HTTP {response.status_code}",
                {"url": url, "status_code": response.status_code},
            )

        page = self.extract(url, response.text)
        if not page.text:
            raise PageFetchError(f"No readable text at {url}", {"url": url})

        logger.info(f"Fetched {url}: {len(page.text)} chars")
        return page
