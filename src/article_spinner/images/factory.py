from __future__ import annotations

from collections.abc import Callable
from typing import Optional

import requests

from ..config import Settings
from .base import ImageProvider
from .html import HtmlImageSearchProvider
from .unsplash import UnsplashSourceProvider

ImageProviderBuilder = Callable[[Settings, Optional[requests.Session]], ImageProvider]

_IMAGE_PROVIDER_REGISTRY: dict[str, ImageProviderBuilder] = {}


def register_image_provider(name: str, builder: ImageProviderBuilder) -> None:
    _IMAGE_PROVIDER_REGISTRY[name.strip().lower()] = builder


def _build_unsplash(settings: Settings, session: Optional[requests.Session]) -> ImageProvider:
    return UnsplashSourceProvider()


def _build_html(settings: Settings, session: Optional[requests.Session]) -> ImageProvider:
    return HtmlImageSearchProvider(
        search_url=settings.image_search_url,
        timeout_sec=settings.request_timeout_sec,
        user_agent=settings.request_user_agent,
        session=session,
    )


def build_image_provider(settings: Settings, session: Optional[requests.Session] = None) -> ImageProvider:
    if not _IMAGE_PROVIDER_REGISTRY:
        register_image_provider("unsplash", _build_unsplash)
        register_image_provider("placeholder", _build_unsplash)
        register_image_provider("html", _build_html)

    provider = "placeholder" if settings.dry_run else settings.image_provider.strip().lower()
    builder = _IMAGE_PROVIDER_REGISTRY.get(provider)
    if not builder:
        options = ", ".join(sorted(_IMAGE_PROVIDER_REGISTRY.keys()))
        raise ValueError(f"Unsupported image provider '{provider}'. Available: {options}")
    return builder(settings, session)
