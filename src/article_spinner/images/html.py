from __future__ import annotations

from typing import Optional
from urllib.parse import quote_plus, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from ..errors import NetworkError, NoResultsError, ProviderError
from .base import ImageProvider


class HtmlImageSearchProvider(ImageProvider):
    """Fetches a search results page and picks its lead image."""

    name = "html"

    def __init__(
        self,
        search_url: str,
        timeout_sec: float,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        if "{query}" not in (search_url or ""):
            raise ValueError("IMAGE_SEARCH_URL must contain a {query} placeholder")
        self.search_url = search_url
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers.update({"User-Agent": user_agent})

    def search(self, query: str) -> str:
        text = (query or "").strip()
        if not text:
            raise NoResultsError("image query is empty")

        url = self.search_url.replace("{query}", quote_plus(text))
        try:
            response = self.session.get(url, timeout=self.timeout_sec)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkError(f"image search request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderError(f"image search failed (HTTP {response.status_code})")

        image_url = self._extract_image_url(response.text or "", base_url=url)
        if not image_url:
            raise NoResultsError(f"no images found for query: {text}")
        return image_url

    def _extract_image_url(self, html: str, base_url: str) -> Optional[str]:
        soup = BeautifulSoup(html, "html.parser")

        for attrs in ({"property": "og:image"}, {"name": "twitter:image"}):
            tag = soup.find("meta", attrs=attrs)
            if tag and tag.get("content"):
                candidate = self._absolute(str(tag.get("content")).strip(), base_url)
                if candidate:
                    return candidate

        for img in soup.find_all("img"):
            src = img.get("data-src") or img.get("src")
            if not src:
                continue
            candidate = self._absolute(str(src).strip(), base_url)
            if candidate:
                return candidate
        return None

    @staticmethod
    def _absolute(src: str, base_url: str) -> Optional[str]:
        if not src or src.startswith("data:"):
            return None
        absolute = urljoin(base_url, src)
        if urlparse(absolute).scheme not in {"http", "https"}:
            return None
        return absolute
