from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from typing import Optional

from .concurrency import call_collaborator
from .errors import ProviderError
from .models import ArticleRequest, StageKey

DEFAULT_TOPICS: tuple[str, ...] = (
    "gaming trends",
    "upcoming games",
    "game reviews",
    "gaming community",
    "indie games",
    "AAA titles",
    "gaming nostalgia",
    "multiplayer games",
    "female gamers",
    "gaming tips",
    "gaming hardware",
    "gaming culture",
)
DEFAULT_SUMMARY = "Generated article summary"


class TitleSuggester:
    """Asks the generator for fresh title/summary pairs on random topics."""

    def __init__(
        self,
        generator,
        topics: Sequence[str] = DEFAULT_TOPICS,
        rng: Optional[random.Random] = None,
        max_attempts: int = 5,
        logger: Optional[logging.Logger] = None,
    ):
        if not topics:
            raise ValueError("at least one topic is required")
        self.generator = generator
        self.topics = tuple(topics)
        self.rng = rng or random.Random()
        self.max_attempts = max(1, max_attempts)
        self.logger = logger or logging.getLogger(__name__)
        self.suggested: list[str] = []

    async def suggest(self, existing_titles: Sequence[str] = ()) -> ArticleRequest:
        avoid = {title.strip().lower() for title in (*existing_titles, *self.suggested) if title and title.strip()}

        for attempt in range(1, self.max_attempts + 1):
            prompt = f"Article about {self.rng.choice(self.topics)}"
            result = await call_collaborator(self.generator.generate, prompt, StageKey.TITLE_AND_SUMMARY)

            title, summary = prompt, DEFAULT_SUMMARY
            if isinstance(result, dict):
                title = str(result.get("title") or "").strip() or title
                summary = str(result.get("summary") or "").strip() or summary
            elif isinstance(result, str) and result.strip():
                summary = result.strip()

            if title.lower() in avoid:
                self.logger.info("duplicate title suggested, retrying: attempt=%s title=%s", attempt, title)
                continue

            self.suggested.append(title)
            return ArticleRequest(title=title, summary=summary)

        raise ProviderError(f"no unique title after {self.max_attempts} attempts")
