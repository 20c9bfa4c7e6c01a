from __future__ import annotations

import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import PersistError
from .models import GeneratedArticle, to_utc_iso, utc_now

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

SCHEMA = """
CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    summary TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL,
    tldr TEXT NOT NULL,
    image TEXT NOT NULL,
    author_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    published_date TEXT,
    scheduled_for TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_articles_scheduled_for ON articles(scheduled_for);
CREATE INDEX IF NOT EXISTS idx_articles_author_id ON articles(author_id);
"""

_COLUMNS = (
    "id",
    "title",
    "summary",
    "content",
    "tldr",
    "image",
    "author_id",
    "created_at",
    "updated_at",
    "published_date",
    "scheduled_for",
)


class SQLiteStore:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with closing(self._connect()) as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @staticmethod
    def _row_to_article(row: sqlite3.Row) -> dict[str, object]:
        return {column: row[column] for column in _COLUMNS}

    def insert(self, record: GeneratedArticle) -> int:
        row = record.to_row()
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        try:
            with closing(self._connect()) as conn:
                cursor = conn.execute(
                    f"INSERT INTO articles ({columns}) VALUES ({placeholders})",
                    tuple(row.values()),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise PersistError(f"article insert failed: {exc}", cause=exc) from exc

    def get_latest_future_scheduled(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Latest ``scheduled_for`` strictly after ``now``, or None."""
        threshold = to_utc_iso(now or utc_now())
        with closing(self._connect()) as conn:
            row = conn.execute(
                """
                SELECT scheduled_for FROM articles
                WHERE scheduled_for > ?
                ORDER BY scheduled_for DESC
                LIMIT 1
                """,
                (threshold,),
            ).fetchone()
        if not row or not row["scheduled_for"]:
            return None
        return datetime.fromisoformat(str(row["scheduled_for"]))

    def list_articles(self, *, limit: int = DEFAULT_LIMIT) -> list[dict[str, object]]:
        safe_limit = max(1, min(int(limit), MAX_LIMIT))
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"""
                SELECT {", ".join(_COLUMNS)} FROM articles
                ORDER BY scheduled_for DESC, id DESC
                LIMIT ?
                """,
                (safe_limit,),
            ).fetchall()
            return [self._row_to_article(row) for row in rows]

    def get_article(self, article_id: int) -> Optional[dict[str, object]]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM articles WHERE id = ? LIMIT 1",
                (article_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_article(row)
