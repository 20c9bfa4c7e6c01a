from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .concurrency import CancellationToken
from .config import Settings
from .errors import AuthError, ValidationError
from .models import ArticleRequest, RunResult
from .pipeline import PipelineOrchestrator, build_pipeline
from .progress import ProgressTracker
from .store import DEFAULT_LIMIT, MAX_LIMIT, SQLiteStore

API_KEY_ENV = "API_KEY"
API_KEY_HEADER = "X-API-Key"

PipelineFactory = Callable[[ProgressTracker], PipelineOrchestrator]


class ArticleRequestBody(BaseModel):
    title: str = ""
    summary: Optional[str] = None
    scheduled_for: Optional[datetime] = None


class RunRequestBody(BaseModel):
    articles: list[ArticleRequestBody] = Field(default_factory=list)


class RunState:
    """The single active (or most recent) run served by the API."""

    def __init__(self) -> None:
        self.tracker: Optional[ProgressTracker] = None
        self.task: Optional[asyncio.Task] = None
        self.token: Optional[CancellationToken] = None
        self.result: Optional[RunResult] = None
        self.error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def to_dict(self) -> dict[str, object]:
        snapshot = self.tracker.snapshot if self.tracker else None
        body: dict[str, object] = {
            "ok": True,
            "running": self.running,
            "items": snapshot.to_list() if snapshot else [],
            "error": self.error,
            "result": None,
        }
        if self.result is not None:
            body["result"] = {
                "processed": self.result.processed,
                "persisted": self.result.persisted,
                "failed": self.result.failed,
                "cancelled": self.result.cancelled,
                "notices": [{"level": n.level, "message": n.message} for n in self.result.notices],
            }
        return body


def build_app(
    *,
    settings: Settings,
    api_key: str,
    cors_origins: tuple[str, ...] = (),
    pipeline_factory: Optional[PipelineFactory] = None,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    normalized_api_key = (api_key or "").strip()
    if not normalized_api_key:
        raise ValueError("API_KEY is required")

    settings.ensure_dirs()
    store = SQLiteStore(settings.db_path)
    app_logger = logger or logging.getLogger("article_spinner.api")
    normalized_origins = tuple(origin.strip() for origin in cors_origins if origin.strip())
    if pipeline_factory is None:
        def pipeline_factory(tracker: ProgressTracker) -> PipelineOrchestrator:
            return build_pipeline(settings, tracker=tracker, logger=app_logger)

    state = RunState()

    app = FastAPI(
        title="Article Spinner API",
        description="Start article generation runs and follow their progress",
        version="0.1.0",
    )
    app.state.run_state = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(normalized_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[API_KEY_HEADER, "Content-Type"],
    )
    if not normalized_origins:
        app_logger.warning("CORS whitelist is empty; browser cross-origin requests will be rejected")

    @app.middleware("http")
    async def api_key_guard(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            provided = (request.headers.get(API_KEY_HEADER) or "").strip()
            if provided != normalized_api_key:
                return JSONResponse(status_code=401, content={"ok": False, "error": "unauthorized"})
        return await call_next(request)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
        error_message = exc.detail if isinstance(exc.detail, str) else "request_error"
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": error_message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        message = str(exc.errors()[0].get("msg", "validation_error")) if exc.errors() else "validation_error"
        return JSONResponse(status_code=422, content={"ok": False, "error": message})

    @app.exception_handler(sqlite3.Error)
    async def sqlite_exception_handler(_: Request, exc: sqlite3.Error) -> JSONResponse:
        app_logger.exception("api sqlite error")
        return JSONResponse(status_code=500, content={"ok": False, "error": "internal_error"})

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/articles")
    def list_articles(limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)) -> dict[str, object]:
        items = store.list_articles(limit=limit)
        return {"ok": True, "items": items, "count": len(items), "limit": limit}

    @app.get("/api/articles/{article_id}")
    def get_article(article_id: int) -> dict[str, object]:
        item = store.get_article(article_id)
        if item is None:
            raise HTTPException(status_code=404, detail="not_found")
        return {"ok": True, "item": item}

    async def _drive(pipeline: PipelineOrchestrator, requests_: list[ArticleRequest]) -> None:
        try:
            state.result = await pipeline.run(requests_, cancel_token=state.token)
        except (ValidationError, AuthError) as exc:
            state.error = str(exc)
        except Exception as exc:
            app_logger.exception("run failed")
            state.error = str(exc) or exc.__class__.__name__

    @app.post("/api/runs", status_code=202)
    async def start_run(body: RunRequestBody) -> dict[str, object]:
        if state.running:
            raise HTTPException(status_code=409, detail="a run is already in progress")

        requests_ = [
            ArticleRequest(title=item.title, summary=item.summary, scheduled_for=item.scheduled_for)
            for item in body.articles
        ]
        if not any(request.is_usable for request in requests_):
            raise HTTPException(status_code=400, detail="Please enter at least one article title")

        tracker = ProgressTracker(logger=app_logger)
        try:
            pipeline = pipeline_factory(tracker)
        except ValueError as exc:
            app_logger.error("pipeline setup failed: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc) or "pipeline_setup_failed") from exc
        if not pipeline.session.current_author_id():
            raise HTTPException(status_code=401, detail="You must be logged in to generate articles")

        state.tracker = tracker
        state.token = CancellationToken()
        state.result = None
        state.error = None
        state.task = asyncio.create_task(_drive(pipeline, requests_))
        return {"ok": True, "accepted": sum(1 for request in requests_ if request.is_usable)}

    @app.get("/api/runs/current")
    def current_run() -> dict[str, object]:
        if state.tracker is None:
            raise HTTPException(status_code=404, detail="no_run")
        return state.to_dict()

    @app.post("/api/runs/current/cancel")
    def cancel_run() -> dict[str, object]:
        if not state.running or state.token is None:
            raise HTTPException(status_code=409, detail="no run in progress")
        state.token.cancel()
        return {"ok": True, "cancelling": True}

    return app


def _resolve_api_key(api_key: Optional[str] = None) -> str:
    if api_key is not None and api_key.strip():
        return api_key.strip()
    env_value = (os.getenv(API_KEY_ENV) or "").strip()
    if env_value:
        return env_value
    raise ValueError("API_KEY is required")


def create_app() -> FastAPI:
    """
    Uvicorn factory entrypoint.
    Example:
      API_KEY=your_secret AUTHOR_ID=42 \
      python3 -m uvicorn article_spinner.api:create_app --factory --host 127.0.0.1 --port 8000
    """
    settings = Settings.from_files()
    return build_app(
        settings=settings,
        api_key=_resolve_api_key(settings.api_key),
        cors_origins=settings.api_cors_origins,
        logger=logging.getLogger("article_spinner.api"),
    )


def run_api_server(
    *,
    settings: Settings,
    host: str = "127.0.0.1",
    port: int = 8000,
    logger: Optional[logging.Logger] = None,
) -> None:
    if port < 1 or port > 65535:
        raise ValueError("port must be in [1, 65535]")

    app_logger = logger or logging.getLogger("article_spinner.api")
    app = build_app(
        settings=settings,
        api_key=_resolve_api_key(settings.api_key),
        cors_origins=settings.api_cors_origins,
        logger=app_logger,
    )
    app_logger.info("api started: http://%s:%s (db=%s)", host, port, Path(settings.db_path))

    uvicorn.run(app, host=host, port=port, log_level="info")
