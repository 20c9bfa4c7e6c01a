from __future__ import annotations

from collections.abc import Callable
from typing import Optional

import requests

from ..config import Settings
from .base import ContentGenerator
from .placeholder import PlaceholderContentGenerator
from .serverless import ServerlessContentGenerator

GeneratorBuilder = Callable[[Settings, Optional[requests.Session]], ContentGenerator]

_GENERATOR_REGISTRY: dict[str, GeneratorBuilder] = {}


def register_generator(name: str, builder: GeneratorBuilder) -> None:
    _GENERATOR_REGISTRY[name.strip().lower()] = builder


def _build_serverless(settings: Settings, session: Optional[requests.Session]) -> ContentGenerator:
    return ServerlessContentGenerator(
        endpoint=settings.generator_endpoint,
        author_id=settings.author_id,
        timeout_sec=settings.request_timeout_sec,
        session=session,
    )


def _build_placeholder(settings: Settings, session: Optional[requests.Session]) -> ContentGenerator:
    return PlaceholderContentGenerator()


def build_generator(settings: Settings, session: Optional[requests.Session] = None) -> ContentGenerator:
    if not _GENERATOR_REGISTRY:
        register_generator("serverless", _build_serverless)
        register_generator("placeholder", _build_placeholder)
        register_generator("none", _build_placeholder)

    provider = "placeholder" if settings.dry_run else settings.generator_provider.strip().lower()
    builder = _GENERATOR_REGISTRY.get(provider)
    if not builder:
        options = ", ".join(sorted(_GENERATOR_REGISTRY.keys()))
        raise ValueError(f"Unsupported generator provider '{provider}'. Available: {options}")
    return builder(settings, session)
