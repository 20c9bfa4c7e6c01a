from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from .concurrency import call_collaborator
from .models import ArticleRequest

SCHEDULE_INTERVAL = timedelta(days=7)
DEFAULT_PUBLISH_HOUR = 12


def local_now() -> datetime:
    """Naive local wall-clock time; offsets are resolved per date in ``default_base``."""
    return datetime.now()


class ScheduleCalculator:
    """Assigns publish dates to a batch.

    The base is the latest future ``scheduled_for`` already in the store, or
    tomorrow at local noon. Each request without an explicit date takes the
    rolling base plus ``SCHEDULE_INTERVAL`` and moves the base there.
    Explicit dates are used verbatim and leave the rolling base untouched,
    so an explicit date early in a batch can sort after a later
    auto-scheduled article.
    """

    def __init__(
        self,
        store,
        clock: Optional[Callable[[], datetime]] = None,
        interval: timedelta = SCHEDULE_INTERVAL,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.clock = clock or local_now
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)

    def default_base(self) -> datetime:
        now = self.clock()
        noon = datetime.combine(now.date() + timedelta(days=1), time(DEFAULT_PUBLISH_HOUR))
        if now.tzinfo is None:
            # local offset of tomorrow, which differs from today's across a DST change
            return noon.astimezone()
        return noon.replace(tzinfo=now.tzinfo)

    async def base_date(self) -> datetime:
        latest = await call_collaborator(self.store.get_latest_future_scheduled, self.clock())
        if latest is not None:
            self.logger.info("schedule base from latest future article: %s", latest.isoformat())
            return latest
        base = self.default_base()
        self.logger.info("schedule base defaulted to tomorrow noon: %s", base.isoformat())
        return base

    def assign(self, requests: Sequence[ArticleRequest], base: datetime) -> dict[str, datetime]:
        schedule: dict[str, datetime] = {}
        rolling = base
        for request in requests:
            if request.scheduled_for is not None:
                schedule[request.request_id] = request.scheduled_for
                continue
            rolling = rolling + self.interval
            schedule[request.request_id] = rolling
        return schedule
