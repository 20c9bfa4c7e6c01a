from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Optional

import requests

from .concurrency import CancellationToken
from .config import Settings
from .errors import AuthError, SpinnerError, ValidationError
from .generators import build_generator
from .models import ArticleRequest, ProgressSnapshot
from .pipeline import build_pipeline
from .progress import ProgressTracker
from .report import format_article_progress, format_run_summary
from .titles import TitleSuggester


def _parse_datetime(value: str) -> datetime:
    text = value.strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"invalid schedule date '{text}', expected ISO format e.g. 2026-11-01T12:00") from None


def parse_request_line(line: str) -> Optional[ArticleRequest]:
    """Parse ``title[ | summary[ | ISO datetime]]``; blank lines and ``#`` comments give None."""
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    parts = [part.strip() for part in text.split("|")]
    title = parts[0]
    summary = parts[1] if len(parts) > 1 and parts[1] else None
    scheduled_for = _parse_datetime(parts[2]) if len(parts) > 2 and parts[2] else None
    return ArticleRequest(title=title, summary=summary, scheduled_for=scheduled_for)


def load_requests(titles: Sequence[str], titles_file: Optional[Path]) -> list[ArticleRequest]:
    loaded = [ArticleRequest(title=title) for title in titles]
    if titles_file is not None:
        for line in titles_file.read_text(encoding="utf-8").splitlines():
            request = parse_request_line(line)
            if request is not None:
                loaded.append(request)
    return loaded


class ProgressPrinter:
    """Prints a progress row whenever an article's status line changes."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._last: dict[str, str] = {}

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        for progress in snapshot:
            rendered = format_article_progress(progress)
            if self._last.get(progress.request_id) != rendered:
                self._last[progress.request_id] = rendered
                print(rendered, file=self.stream, flush=True)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate and schedule a batch of AI-written articles")
    parser.add_argument("titles", nargs="*", help="Article titles to generate")
    parser.add_argument(
        "--titles-file",
        type=Path,
        default=None,
        help="File with one article per line: title | summary | ISO schedule date",
    )
    parser.add_argument("--suggest", type=int, default=0, metavar="N", help="Add N suggested titles to the batch")
    parser.add_argument("--author-id", default=None, help="Override AUTHOR_ID")
    parser.add_argument("--config-file", default="config.ini", help="Path to config.ini file")
    parser.add_argument("--env-file", default=".env", help="Path to .env file")
    parser.add_argument("--dry-run", action="store_true", help="Use offline placeholder generators")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--serve-api", action="store_true", help="Serve the HTTP API instead of running a batch")
    parser.add_argument("--api-host", default="127.0.0.1", help="API bind host")
    parser.add_argument("--api-port", type=int, default=8000, help="API bind port")
    return parser.parse_args(argv)


async def _suggest_titles(
    settings: Settings,
    requests_: Sequence[ArticleRequest],
    count: int,
    logger: logging.Logger,
) -> list[ArticleRequest]:
    session = requests.Session()
    session.headers.update({"User-Agent": settings.request_user_agent})
    suggester = TitleSuggester(build_generator(settings, session=session), logger=logger)
    titles = [request.title for request in requests_]
    suggestions: list[ArticleRequest] = []
    for _ in range(count):
        suggestion = await suggester.suggest(titles)
        logger.info("suggested title: %s", suggestion.title)
        titles.append(suggestion.title)
        suggestions.append(suggestion)
    return suggestions


async def _run_batch(settings: Settings, requests_: list[ArticleRequest], logger: logging.Logger):
    tracker = ProgressTracker(logger=logger)
    tracker.subscribe(ProgressPrinter())
    pipeline = build_pipeline(settings, tracker=tracker, logger=logger)

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler unavailable; cancellation disabled")

    try:
        return await pipeline.run(requests_, cancel_token=token)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("article_spinner")

    settings = Settings.from_files(
        config_file=Path(args.config_file),
        env_file=Path(args.env_file),
    )
    if args.dry_run:
        settings.dry_run = True
    if args.author_id:
        settings.author_id = args.author_id.strip() or None

    settings.ensure_dirs()

    if args.serve_api:
        from .api import run_api_server

        run_api_server(settings=settings, host=args.api_host, port=args.api_port, logger=logger)
        return

    try:
        requests_ = load_requests(args.titles, args.titles_file)
    except (OSError, ValueError) as exc:
        raise SystemExit(str(exc))

    if args.suggest > 0:
        try:
            requests_.extend(asyncio.run(_suggest_titles(settings, requests_, args.suggest, logger)))
        except (SpinnerError, ValueError) as exc:
            raise SystemExit(str(exc))

    try:
        result = asyncio.run(_run_batch(settings, requests_, logger))
    except (ValidationError, AuthError) as exc:
        raise SystemExit(str(exc))

    print(format_run_summary(result))
    if result.failed or result.cancelled:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
