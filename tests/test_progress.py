import pytest

from article_spinner.models import STAGE_ORDER, ArticleRequest, StageKey, StageState, StageStatus
from article_spinner.progress import InvalidTransition, ProgressTracker


def test_begin_creates_entries_lazily_with_all_stages_pending() -> None:
    tracker = ProgressTracker()
    first = ArticleRequest(title="  First  ")
    second = ArticleRequest(title="Second")

    assert len(tracker.snapshot) == 0
    tracker.begin(first)

    assert len(tracker.snapshot) == 1
    assert tracker.get(second.request_id) is None
    progress = tracker.get(first.request_id)
    assert progress.title == "First"
    assert [key for key in progress.steps] == list(STAGE_ORDER)
    assert all(status.state is StageState.PENDING for status in progress.steps.values())


def test_update_replaces_snapshot_without_touching_old_one() -> None:
    tracker = ProgressTracker()
    request = ArticleRequest(title="Snapshot")
    tracker.begin(request)
    before = tracker.snapshot

    tracker.update(request.request_id, StageKey.CONTENT, StageStatus.in_progress())

    assert before.get(request.request_id).steps[StageKey.CONTENT].state is StageState.PENDING
    assert tracker.snapshot is not before
    assert tracker.get(request.request_id).steps[StageKey.CONTENT].state is StageState.IN_PROGRESS


def test_update_rejects_regressions() -> None:
    tracker = ProgressTracker()
    request = ArticleRequest(title="Monotonic")
    tracker.begin(request)
    tracker.update(request.request_id, StageKey.TLDR, StageStatus.in_progress())
    tracker.update(request.request_id, StageKey.TLDR, StageStatus.failed("timeout"))

    with pytest.raises(InvalidTransition):
        tracker.update(request.request_id, StageKey.TLDR, StageStatus.completed())
    with pytest.raises(InvalidTransition):
        tracker.update(request.request_id, StageKey.TLDR, StageStatus.in_progress())

    status = tracker.get(request.request_id).steps[StageKey.TLDR]
    assert status.state is StageState.ERROR
    assert status.error == "timeout"


def test_update_unknown_article_raises() -> None:
    tracker = ProgressTracker()

    with pytest.raises(KeyError):
        tracker.update("missing", StageKey.CONTENT, StageStatus.in_progress())


def test_predicates_follow_stage_map() -> None:
    tracker = ProgressTracker()
    request = ArticleRequest(title="Predicates")
    tracker.begin(request)
    request_id = request.request_id

    progress = tracker.update(request_id, StageKey.TITLE_AND_SUMMARY, StageStatus.in_progress())
    assert progress.is_in_progress is True
    assert progress.is_completed is False

    progress = tracker.update(request_id, StageKey.TITLE_AND_SUMMARY, StageStatus.failed("boom"))
    assert progress.is_in_progress is False
    assert progress.is_failed is True

    for key in STAGE_ORDER[1:]:
        tracker.update(request_id, key, StageStatus.in_progress())
        progress = tracker.update(request_id, key, StageStatus.completed())
    assert progress.is_terminal is True
    assert progress.is_completed is False
    assert progress.is_persisted is True


def test_fail_open_stages_only_touches_non_terminal_stages() -> None:
    tracker = ProgressTracker()
    request = ArticleRequest(title="Partial")
    tracker.begin(request)
    tracker.update(request.request_id, StageKey.TITLE_AND_SUMMARY, StageStatus.completed())
    tracker.update(request.request_id, StageKey.CONTENT, StageStatus.in_progress())

    progress = tracker.fail_open_stages(request.request_id, "stopped")

    assert progress.steps[StageKey.TITLE_AND_SUMMARY].state is StageState.COMPLETED
    for key in (StageKey.CONTENT, StageKey.TLDR, StageKey.IMAGE, StageKey.DATABASE):
        assert progress.steps[key] == StageStatus.failed("stopped")


def test_observers_receive_each_snapshot_and_can_unsubscribe() -> None:
    tracker = ProgressTracker()
    seen = []
    unsubscribe = tracker.subscribe(seen.append)
    request = ArticleRequest(title="Observed")

    tracker.begin(request)
    tracker.update(request.request_id, StageKey.CONTENT, StageStatus.in_progress())
    unsubscribe()
    tracker.update(request.request_id, StageKey.CONTENT, StageStatus.completed())

    assert len(seen) == 2
    assert seen[-1].get(request.request_id).steps[StageKey.CONTENT].state is StageState.IN_PROGRESS


def test_failing_observer_does_not_break_updates() -> None:
    tracker = ProgressTracker()

    def broken(_snapshot) -> None:
        raise RuntimeError("render failed")

    tracker.subscribe(broken)
    request = ArticleRequest(title="Resilient")
    tracker.begin(request)

    assert tracker.get(request.request_id) is not None
