from __future__ import annotations

from .models import STAGE_LABELS, STAGE_ORDER, ArticleProgress, RunResult, StageState

_STATE_MARKS = {
    StageState.PENDING: "[ ]",
    StageState.IN_PROGRESS: "[~]",
    StageState.COMPLETED: "[x]",
    StageState.ERROR: "[!]",
}


def article_mark(progress: ArticleProgress) -> str:
    if progress.is_completed:
        return "[x]"
    if progress.is_failed:
        return "[!]"
    if progress.is_in_progress:
        return "[~]"
    return "   "


def format_article_progress(progress: ArticleProgress, detailed: bool = False) -> str:
    lines = [f"{article_mark(progress)} {progress.title}"]
    if detailed or progress.is_failed or progress.is_in_progress:
        for key in STAGE_ORDER:
            status = progress.steps[key]
            line = f"    {_STATE_MARKS[status.state]} {STAGE_LABELS[key]}"
            if status.error:
                line += f": {status.error}"
            lines.append(line)
    return "\n".join(lines)


def format_run_summary(result: RunResult) -> str:
    partial = sum(1 for progress in result.progress if progress.is_persisted and progress.is_failed)
    lines = [
        f"{result.persisted} of {result.processed} article(s) saved"
        f" ({result.fully_completed} complete, {partial} with fallbacks,"
        f" {result.processed - result.persisted} not saved)"
    ]
    if result.cancelled:
        lines.append("run was cancelled")
    lines.extend(f"{notice.level}: {notice.message}" for notice in result.notices)
    return "\n".join(lines)
