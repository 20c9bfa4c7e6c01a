from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .assembler import ArticleAssembler
from .concurrency import call_collaborator
from .errors import ProviderError
from .models import (
    NO_SUMMARY_FALLBACK,
    STAGE_LABELS,
    STAGE_ORDER,
    ArticleDraft,
    GeneratedText,
    StageKey,
    StageOutcome,
)


def _never(draft: ArticleDraft) -> bool:
    return False


def _has_summary(draft: ArticleDraft) -> bool:
    return draft.has_summary


@dataclass(frozen=True)
class Stage:
    key: StageKey
    label: str
    should_skip: Callable[[ArticleDraft], bool] = _never


STAGES: tuple[Stage, ...] = tuple(
    Stage(
        key=key,
        label=STAGE_LABELS[key],
        should_skip=_has_summary if key is StageKey.TITLE_AND_SUMMARY else _never,
    )
    for key in STAGE_ORDER
)
STAGES_BY_KEY: Mapping[StageKey, Stage] = {stage.key: stage for stage in STAGES}


def extract_summary(result: GeneratedText) -> str:
    if isinstance(result, Mapping):
        summary = result.get("summary")
        return summary.strip() if isinstance(summary, str) else ""
    if isinstance(result, str):
        return result.strip()
    return ""


def extract_text(result: GeneratedText, stage: StageKey, *keys: str) -> str:
    value: Any = result
    if isinstance(result, Mapping):
        value = next((result[key] for key in (stage.value, *keys) if result.get(key)), None)
    if not isinstance(value, str) or not value.strip():
        raise ProviderError(f"empty {stage.value} response")
    return value.strip()


StageHandler = Callable[[ArticleDraft, Optional[str]], Awaitable[Any]]


class StageRunner:
    """Runs one stage for one article and reports a ``StageOutcome``.

    Collaborator exceptions are caught here and returned as failed outcomes
    carrying any fallback output; nothing raised by a generator, image
    provider or store escapes ``run``.
    """

    def __init__(
        self,
        generator,
        image_provider,
        assembler: ArticleAssembler,
        image_fallback_url: str,
        logger: Optional[logging.Logger] = None,
    ):
        self.generator = generator
        self.image_provider = image_provider
        self.assembler = assembler
        self.image_fallback_url = image_fallback_url
        self.logger = logger or logging.getLogger(__name__)
        self._handlers: dict[StageKey, StageHandler] = {
            StageKey.TITLE_AND_SUMMARY: self._title_and_summary,
            StageKey.CONTENT: self._content,
            StageKey.TLDR: self._tldr,
            StageKey.IMAGE: self._image,
            StageKey.DATABASE: self._database,
        }
        self._fallbacks: dict[StageKey, Any] = {
            StageKey.TITLE_AND_SUMMARY: NO_SUMMARY_FALLBACK,
            StageKey.IMAGE: image_fallback_url,
        }

    async def run(
        self,
        stage: Union[Stage, StageKey],
        draft: ArticleDraft,
        author_id: Optional[str] = None,
    ) -> StageOutcome:
        if isinstance(stage, StageKey):
            stage = STAGES_BY_KEY[stage]

        if stage.should_skip(draft):
            self.logger.info("stage skipped: article=%s stage=%s", draft.title, stage.key.value)
            return StageOutcome.success(stage.key, skipped=True)

        try:
            output = await self._handlers[stage.key](draft, author_id)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            self.logger.warning(
                "stage failed: article=%s stage=%s error=%s",
                draft.title,
                stage.key.value,
                message,
            )
            return StageOutcome.failure(stage.key, message, output=self._fallbacks.get(stage.key))
        return StageOutcome.success(stage.key, output=output)

    async def _generate(self, draft: ArticleDraft, stage: StageKey) -> GeneratedText:
        return await call_collaborator(self.generator.generate, draft.title, stage)

    async def _title_and_summary(self, draft: ArticleDraft, author_id: Optional[str]) -> str:
        result = await self._generate(draft, StageKey.TITLE_AND_SUMMARY)
        return extract_summary(result)

    async def _content(self, draft: ArticleDraft, author_id: Optional[str]) -> str:
        result = await self._generate(draft, StageKey.CONTENT)
        return extract_text(result, StageKey.CONTENT)

    async def _tldr(self, draft: ArticleDraft, author_id: Optional[str]) -> str:
        result = await self._generate(draft, StageKey.TLDR)
        return extract_text(result, StageKey.TLDR)

    async def _image(self, draft: ArticleDraft, author_id: Optional[str]) -> str:
        query = draft.title
        try:
            result = await self._generate(draft, StageKey.IMAGE)
            query = extract_text(result, StageKey.IMAGE, "imageQuery", "query")
        except Exception as exc:
            self.logger.info("image query generation failed, using title: article=%s error=%s", draft.title, exc)
        return await call_collaborator(self.image_provider.search, query)

    async def _database(self, draft: ArticleDraft, author_id: Optional[str]) -> int:
        if not author_id:
            raise ProviderError("no author id for article insert")
        return await self.assembler.persist(draft, author_id)
