from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Callable, Optional

import requests

from .assembler import ArticleAssembler
from .concurrency import CancellationToken, call_collaborator
from .config import Settings
from .errors import AuthError, ValidationError
from .generators import build_generator
from .images import build_image_provider
from .models import (
    ArticleDraft,
    ArticleRequest,
    Notice,
    RunResult,
    StageKey,
    StageOutcome,
    StageStatus,
)
from .progress import ProgressTracker
from .schedule import ScheduleCalculator
from .session import SessionProvider, StaticSessionProvider
from .stages import STAGES, StageRunner
from .store import SQLiteStore

CANCELLED_MESSAGE = "Run cancelled"


def usable_requests(requests_: Sequence[ArticleRequest]) -> list[ArticleRequest]:
    return [request for request in requests_ if request.is_usable]


def duplicate_request_ids(requests_: Sequence[ArticleRequest], started: Iterable[str] = ()) -> list[str]:
    seen = set(started)
    duplicates: list[str] = []
    for request in requests_:
        if request.request_id in seen and request.request_id not in duplicates:
            duplicates.append(request.request_id)
        seen.add(request.request_id)
    return duplicates


def _fold(draft: ArticleDraft, outcome: StageOutcome) -> None:
    if outcome.skipped:
        return
    if outcome.stage is StageKey.TITLE_AND_SUMMARY and outcome.output is not None:
        draft.summary = outcome.output
    elif outcome.stage is StageKey.CONTENT and outcome.ok:
        draft.content = outcome.output
    elif outcome.stage is StageKey.TLDR and outcome.ok:
        draft.tldr = outcome.output
    elif outcome.stage is StageKey.IMAGE and outcome.output is not None:
        draft.image = outcome.output


class PipelineOrchestrator:
    def __init__(
        self,
        runner: StageRunner,
        scheduler: ScheduleCalculator,
        session: SessionProvider,
        tracker: Optional[ProgressTracker] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.runner = runner
        self.scheduler = scheduler
        self.session = session
        self.tracker = tracker or ProgressTracker()
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        requests_: Sequence[ArticleRequest],
        cancel_token: Optional[CancellationToken] = None,
    ) -> RunResult:
        queue = usable_requests(requests_)
        if not queue:
            raise ValidationError("Please enter at least one article title")
        duplicates = duplicate_request_ids(queue, started=self.tracker.snapshot.order)
        if duplicates:
            raise ValidationError(f"Duplicate article requests: {', '.join(duplicates)}")

        author_id = await call_collaborator(self.session.current_author_id)
        if not author_id:
            raise AuthError("You must be logged in to generate articles")

        base = await self.scheduler.base_date()
        schedule = self.scheduler.assign(queue, base)
        self.logger.info("run started: articles=%s base=%s", len(queue), base.isoformat())

        token = cancel_token or CancellationToken()
        notices: list[Notice] = []
        persisted = 0

        for request in queue:
            if token.cancelled:
                self.logger.warning("run cancelled before article=%s", request.title.strip())
                break
            if await self._process(request, schedule[request.request_id], author_id, token, notices):
                persisted += 1

        result = RunResult(
            progress=self.tracker.snapshot,
            persisted=persisted,
            cancelled=token.cancelled,
            notices=tuple(notices),
        )
        self.logger.info(
            "run complete: processed=%s persisted=%s failed=%s cancelled=%s",
            result.processed,
            result.persisted,
            result.failed,
            result.cancelled,
        )
        return result

    async def _process(
        self,
        request: ArticleRequest,
        scheduled_for: datetime,
        author_id: str,
        token: CancellationToken,
        notices: list[Notice],
    ) -> bool:
        request_id = request.request_id
        self.tracker.begin(request)
        draft = ArticleDraft.from_request(request, scheduled_for)

        try:
            for stage in STAGES:
                if token.cancelled:
                    self.tracker.fail_open_stages(request_id, CANCELLED_MESSAGE)
                    notices.append(Notice("warning", f"Cancelled before finishing: {draft.title}"))
                    return False

                self.tracker.update(request_id, stage.key, StageStatus.in_progress())
                outcome = await self.runner.run(stage, draft, author_id)
                _fold(draft, outcome)
                self.tracker.update(request_id, stage.key, outcome.to_status())

                if not outcome.ok and stage.key is StageKey.DATABASE:
                    notices.append(Notice("error", f"Error creating article: {outcome.error_message}"))
                elif not outcome.ok:
                    notices.append(
                        Notice("warning", f"{draft.title}: {stage.key.value} failed: {outcome.error_message}")
                    )
        except Exception as exc:
            self.logger.exception("article processing failed: article=%s", draft.title)
            self.tracker.fail_open_stages(request_id, str(exc) or exc.__class__.__name__)
            notices.append(Notice("error", f"Error creating article: {exc}"))
            return False

        progress = self.tracker.get(request_id)
        return bool(progress and progress.is_persisted)


def build_pipeline(
    settings: Settings,
    *,
    http_session: Optional[requests.Session] = None,
    session_provider: Optional[SessionProvider] = None,
    tracker: Optional[ProgressTracker] = None,
    clock: Optional[Callable[[], datetime]] = None,
    logger: Optional[logging.Logger] = None,
) -> PipelineOrchestrator:
    if http_session is None:
        http_session = requests.Session()
        http_session.headers.update({"User-Agent": settings.request_user_agent})

    store = SQLiteStore(settings.db_path)
    assembler = ArticleAssembler(store, image_fallback_url=settings.image_fallback_url, logger=logger)
    runner = StageRunner(
        generator=build_generator(settings, session=http_session),
        image_provider=build_image_provider(settings, session=http_session),
        assembler=assembler,
        image_fallback_url=settings.image_fallback_url,
        logger=logger,
    )
    return PipelineOrchestrator(
        runner=runner,
        scheduler=ScheduleCalculator(store, clock=clock, logger=logger),
        session=session_provider or StaticSessionProvider(settings.author_id),
        tracker=tracker,
        logger=logger,
    )
