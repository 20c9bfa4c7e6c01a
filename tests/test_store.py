from datetime import datetime, timedelta, timezone
from pathlib import Path

from article_spinner.models import GeneratedArticle
from article_spinner.store import SQLiteStore

NOW = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)


def _record(title: str, scheduled_for: datetime) -> GeneratedArticle:
    return GeneratedArticle(
        title=title,
        summary="Summary",
        content="Content",
        tldr="TLDR",
        image="https://img.example.com/x.jpg",
        author_id="author-1",
        created_at=NOW.isoformat(),
        updated_at=NOW.isoformat(),
        scheduled_for=scheduled_for.astimezone(timezone.utc).isoformat(),
    )


def test_insert_returns_row_id_and_round_trips(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "articles.db")

    first = store.insert(_record("First", NOW + timedelta(days=3)))
    second = store.insert(_record("Second", NOW + timedelta(days=10)))

    assert second == first + 1
    item = store.get_article(first)
    assert item is not None
    assert item["title"] == "First"
    assert item["published_date"] is None
    assert store.get_article(999) is None


def test_latest_future_scheduled_ignores_past_articles(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "schedule.db")
    assert store.get_latest_future_scheduled(NOW) is None

    store.insert(_record("Past", NOW - timedelta(days=5)))
    assert store.get_latest_future_scheduled(NOW) is None

    store.insert(_record("Soon", NOW + timedelta(days=2)))
    store.insert(_record("Later", NOW + timedelta(days=9)))

    assert store.get_latest_future_scheduled(NOW) == NOW + timedelta(days=9)


def test_latest_future_scheduled_compares_in_utc(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "tz.db")
    store.insert(_record("Tokyo", datetime(2026, 10, 17, 20, 0, tzinfo=timezone(timedelta(hours=9)))))

    # 20:00+09:00 is 11:00 UTC, still ahead of 09:30 UTC.
    assert store.get_latest_future_scheduled(NOW) == datetime(2026, 10, 17, 11, 0, tzinfo=timezone.utc)


def test_list_articles_orders_by_schedule_and_clamps_limit(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "list.db")
    for days in (3, 1, 2):
        store.insert(_record(f"In {days} days", NOW + timedelta(days=days)))

    items = store.list_articles(limit=500)

    assert [item["title"] for item in items] == ["In 3 days", "In 2 days", "In 1 days"]
    assert len(store.list_articles(limit=0)) == 1
