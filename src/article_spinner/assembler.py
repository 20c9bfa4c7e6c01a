from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from .concurrency import call_collaborator
from .errors import PersistError
from .models import (
    CONTENT_FALLBACK,
    TLDR_FALLBACK,
    ArticleDraft,
    GeneratedArticle,
    to_utc_iso,
    utc_now,
)


class ArticleAssembler:
    def __init__(
        self,
        store,
        image_fallback_url: str,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.image_fallback_url = image_fallback_url
        self.clock = clock or utc_now
        self.logger = logger or logging.getLogger(__name__)

    def assemble(self, draft: ArticleDraft, author_id: str) -> GeneratedArticle:
        stamped_at = to_utc_iso(self.clock())
        return GeneratedArticle(
            title=draft.title,
            summary=draft.summary or "",
            content=draft.content or CONTENT_FALLBACK,
            tldr=draft.tldr or TLDR_FALLBACK,
            image=draft.image or self.image_fallback_url,
            author_id=author_id,
            created_at=stamped_at,
            updated_at=stamped_at,
            published_date=None,
            scheduled_for=to_utc_iso(draft.scheduled_for),
        )

    async def persist(self, draft: ArticleDraft, author_id: str) -> int:
        record = self.assemble(draft, author_id)
        self.logger.info(
            "saving article: title=%s scheduled_for=%s",
            record.title,
            record.scheduled_for,
        )
        try:
            article_id = await call_collaborator(self.store.insert, record)
        except PersistError:
            raise
        except Exception as exc:
            raise PersistError(str(exc) or exc.__class__.__name__, cause=exc) from exc
        if isinstance(article_id, dict):
            article_id = article_id.get("id")
        self.logger.info("article saved: id=%s title=%s", article_id, record.title)
        return int(article_id) if article_id is not None else 0
