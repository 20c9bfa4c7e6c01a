from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .errors import StageError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def to_utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat()


class StageKey(str, Enum):
    TITLE_AND_SUMMARY = "titleAndSummary"
    CONTENT = "content"
    TLDR = "tldr"
    IMAGE = "image"
    DATABASE = "database"


STAGE_ORDER: tuple[StageKey, ...] = (
    StageKey.TITLE_AND_SUMMARY,
    StageKey.CONTENT,
    StageKey.TLDR,
    StageKey.IMAGE,
    StageKey.DATABASE,
)

STAGE_LABELS: Mapping[StageKey, str] = MappingProxyType(
    {
        StageKey.TITLE_AND_SUMMARY: "Generating Title & Summary",
        StageKey.CONTENT: "Writing Article Content",
        StageKey.TLDR: "Creating TL;DR Summary",
        StageKey.IMAGE: "Finding Featured Image",
        StageKey.DATABASE: "Saving to Database",
    }
)

NO_SUMMARY_FALLBACK = "No summary available."
CONTENT_FALLBACK = "Content generation failed. Please try again."
TLDR_FALLBACK = "TL;DR generation failed. Please try again."

# A generator returns plain text, or a {"title", "summary"} mapping for titleAndSummary.
GeneratedText = Union[str, Mapping[str, Any]]


class StageState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (StageState.COMPLETED, StageState.ERROR)


_STATE_RANK = {
    StageState.PENDING: 0,
    StageState.IN_PROGRESS: 1,
    StageState.COMPLETED: 2,
    StageState.ERROR: 2,
}


@dataclass(frozen=True)
class StageStatus:
    state: StageState = StageState.PENDING
    error: Optional[str] = None

    @classmethod
    def pending(cls) -> "StageStatus":
        return cls(StageState.PENDING)

    @classmethod
    def in_progress(cls) -> "StageStatus":
        return cls(StageState.IN_PROGRESS)

    @classmethod
    def completed(cls) -> "StageStatus":
        return cls(StageState.COMPLETED)

    @classmethod
    def failed(cls, message: str) -> "StageStatus":
        return cls(StageState.ERROR, message or "unknown error")

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def can_become(self, other: "StageStatus") -> bool:
        if self.is_terminal:
            return False
        return _STATE_RANK[other.state] > _STATE_RANK[self.state]

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"status": self.state.value, "error": self.error}


@dataclass(frozen=True)
class ArticleRequest:
    title: str
    summary: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_usable(self) -> bool:
        return bool((self.title or "").strip())

    @property
    def has_summary(self) -> bool:
        return bool((self.summary or "").strip())


@dataclass(frozen=True)
class ArticleProgress:
    request_id: str
    title: str
    steps: Mapping[StageKey, StageStatus]

    @classmethod
    def start(cls, request: ArticleRequest) -> "ArticleProgress":
        return cls(
            request_id=request.request_id,
            title=request.title.strip(),
            steps=MappingProxyType({key: StageStatus.pending() for key in STAGE_ORDER}),
        )

    def with_step(self, stage: StageKey, status: StageStatus) -> "ArticleProgress":
        steps = dict(self.steps)
        steps[stage] = status
        return ArticleProgress(
            request_id=self.request_id,
            title=self.title,
            steps=MappingProxyType(steps),
        )

    # The predicates below are derived from `steps` on every access.
    @property
    def is_completed(self) -> bool:
        return all(status.state is StageState.COMPLETED for status in self.steps.values())

    @property
    def is_failed(self) -> bool:
        return any(status.state is StageState.ERROR for status in self.steps.values())

    @property
    def is_in_progress(self) -> bool:
        return any(status.state is StageState.IN_PROGRESS for status in self.steps.values())

    @property
    def is_terminal(self) -> bool:
        return all(status.is_terminal for status in self.steps.values())

    @property
    def is_persisted(self) -> bool:
        return self.steps[StageKey.DATABASE].state is StageState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "title": self.title,
            "completed": self.is_completed,
            "failed": self.is_failed,
            "in_progress": self.is_in_progress,
            "steps": {key.value: self.steps[key].to_dict() for key in STAGE_ORDER},
        }


@dataclass
class ArticleDraft:
    """Working copy of one request while its stages run."""

    request: ArticleRequest
    scheduled_for: datetime
    summary: Optional[str] = None
    content: Optional[str] = None
    tldr: Optional[str] = None
    image: Optional[str] = None

    @classmethod
    def from_request(cls, request: ArticleRequest, scheduled_for: datetime) -> "ArticleDraft":
        return cls(
            request=request,
            scheduled_for=scheduled_for,
            summary=request.summary if request.has_summary else None,
        )

    @property
    def title(self) -> str:
        return self.request.title.strip()

    @property
    def has_summary(self) -> bool:
        return bool((self.summary or "").strip())


@dataclass(frozen=True)
class GeneratedArticle:
    title: str
    summary: str
    content: str
    tldr: str
    image: str
    author_id: str
    created_at: str
    updated_at: str
    scheduled_for: str
    published_date: Optional[str] = None

    def to_row(self) -> dict[str, Optional[str]]:
        return {
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "tldr": self.tldr,
            "image": self.image,
            "author_id": self.author_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "published_date": self.published_date,
            "scheduled_for": self.scheduled_for,
        }


@dataclass(frozen=True)
class StageOutcome:
    stage: StageKey
    output: Any = None
    error: Optional[StageError] = None
    skipped: bool = False

    @classmethod
    def success(cls, stage: StageKey, output: Any = None, skipped: bool = False) -> "StageOutcome":
        return cls(stage=stage, output=output, skipped=skipped)

    @classmethod
    def failure(cls, stage: StageKey, message: str, output: Any = None) -> "StageOutcome":
        return cls(stage=stage, output=output, error=StageError(stage.value, message))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def to_status(self) -> StageStatus:
        if self.ok:
            return StageStatus.completed()
        return StageStatus.failed(self.error_message or "")


@dataclass(frozen=True)
class Notice:
    level: str
    message: str


@dataclass(frozen=True)
class ProgressSnapshot:
    order: tuple[str, ...] = ()
    entries: Mapping[str, ArticleProgress] = field(default_factory=lambda: MappingProxyType({}))

    def __len__(self) -> int:
        return len(self.order)

    def __iter__(self):
        return (self.entries[request_id] for request_id in self.order)

    def get(self, request_id: str) -> Optional[ArticleProgress]:
        return self.entries.get(request_id)

    def to_list(self) -> list[dict[str, Any]]:
        return [progress.to_dict() for progress in self]


@dataclass(frozen=True)
class RunResult:
    progress: ProgressSnapshot
    persisted: int = 0
    cancelled: bool = False
    notices: tuple[Notice, ...] = ()

    @property
    def processed(self) -> int:
        return len(self.progress)

    @property
    def failed(self) -> int:
        return sum(1 for progress in self.progress if progress.is_failed)

    @property
    def fully_completed(self) -> int:
        return sum(1 for progress in self.progress if progress.is_completed)
