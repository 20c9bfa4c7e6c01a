from __future__ import annotations

from urllib.parse import quote

from ..errors import NoResultsError
from .base import ImageProvider

UNSPLASH_SOURCE_BASE = "https://source.unsplash.com/random/1200x800/"


class UnsplashSourceProvider(ImageProvider):
    name = "unsplash"

    def __init__(self, base_url: str = UNSPLASH_SOURCE_BASE):
        self.base_url = base_url.rstrip("/") + "/"

    def search(self, query: str) -> str:
        text = (query or "").strip()
        if not text:
            raise NoResultsError("image query is empty")
        return f"{self.base_url}?{quote(text, safe='')}"
