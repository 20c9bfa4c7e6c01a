from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Callable, Optional

from .models import ArticleProgress, ArticleRequest, ProgressSnapshot, StageKey, StageStatus

ProgressObserver = Callable[[ProgressSnapshot], None]


class InvalidTransition(ValueError):
    pass


class ProgressTracker:
    """Per-article, per-stage status for a single run.

    Every change publishes a new immutable ``ProgressSnapshot``; readers
    holding an older snapshot never see it change underneath them.
    Entries are created when an article starts processing, not before.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._snapshot = ProgressSnapshot()
        self._observers: list[ProgressObserver] = []
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    def subscribe(self, observer: ProgressObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def get(self, request_id: str) -> Optional[ArticleProgress]:
        return self._snapshot.get(request_id)

    def begin(self, request: ArticleRequest) -> ArticleProgress:
        with self._lock:
            current = self._snapshot
            if request.request_id in current.entries:
                raise InvalidTransition(f"article already started: {request.request_id}")
            progress = ArticleProgress.start(request)
            entries = dict(current.entries)
            entries[request.request_id] = progress
            self._snapshot = ProgressSnapshot(
                order=current.order + (request.request_id,),
                entries=MappingProxyType(entries),
            )
        self._publish()
        return progress

    def update(
        self,
        request_id: str,
        stage: StageKey,
        status: StageStatus,
    ) -> ArticleProgress:
        with self._lock:
            current = self._snapshot
            progress = current.entries.get(request_id)
            if progress is None:
                raise KeyError(f"unknown article: {request_id}")
            previous = progress.steps[stage]
            if not previous.can_become(status):
                raise InvalidTransition(
                    f"stage {stage.value} cannot move from {previous.state.value} to {status.state.value}"
                )
            updated = progress.with_step(stage, status)
            entries = dict(current.entries)
            entries[request_id] = updated
            self._snapshot = ProgressSnapshot(order=current.order, entries=MappingProxyType(entries))
        self._publish()
        return updated

    def fail_open_stages(self, request_id: str, message: str) -> ArticleProgress:
        """Mark every non-terminal stage of an article as ``error``."""
        progress = self._snapshot.entries[request_id]
        for stage, status in progress.steps.items():
            if not status.is_terminal:
                progress = self.update(request_id, stage, StageStatus.failed(message))
        return progress

    def _publish(self) -> None:
        snapshot = self._snapshot
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                self.logger.exception("progress observer failed")
