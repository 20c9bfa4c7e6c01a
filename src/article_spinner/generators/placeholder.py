from __future__ import annotations

from ..models import GeneratedText, StageKey
from .base import ContentGenerator


class PlaceholderContentGenerator(ContentGenerator):
    """Offline generator returning canned text, for dry runs."""

    name = "placeholder"

    def generate(self, title: str, stage: StageKey) -> GeneratedText:
        if stage is StageKey.TITLE_AND_SUMMARY:
            return {"title": title, "summary": f"A closer look at {title}."}
        if stage is StageKey.CONTENT:
            return f"{title}\n\nDraft body for {title}."
        if stage is StageKey.TLDR:
            return f"In short: {title}."
        if stage is StageKey.IMAGE:
            return title
        raise ValueError(f"stage '{stage.value}' is not a generation stage")
