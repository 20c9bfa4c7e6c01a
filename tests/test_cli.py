import io
from datetime import datetime
from pathlib import Path

import pytest

from article_spinner.cli import ProgressPrinter, _parse_args, load_requests, main, parse_request_line
from article_spinner.models import ArticleRequest, StageKey, StageStatus
from article_spinner.progress import ProgressTracker


def test_parse_args_uses_expected_defaults() -> None:
    args = _parse_args([])

    assert args.titles == []
    assert args.titles_file is None
    assert args.suggest == 0
    assert args.author_id is None
    assert args.config_file == "config.ini"
    assert args.env_file == ".env"
    assert args.dry_run is False
    assert args.log_level == "INFO"
    assert args.serve_api is False
    assert args.api_host == "127.0.0.1"
    assert args.api_port == 8000


def test_parse_args_titles_and_api_mode() -> None:
    args = _parse_args(["Top 10 RPGs", "Cozy Games", "--serve-api", "--api-port", "18080"])

    assert args.titles == ["Top 10 RPGs", "Cozy Games"]
    assert args.serve_api is True
    assert args.api_port == 18080


def test_parse_request_line_reads_optional_fields() -> None:
    request = parse_request_line("Boss Fights | The hardest ones | 2026-11-01T12:00")

    assert request.title == "Boss Fights"
    assert request.summary == "The hardest ones"
    assert request.scheduled_for == datetime(2026, 11, 1, 12, 0)
    assert parse_request_line("   # comment") is None
    assert parse_request_line("") is None
    assert parse_request_line("Only Title").summary is None


def test_parse_request_line_rejects_bad_dates() -> None:
    with pytest.raises(ValueError):
        parse_request_line("Title | | next tuesday")


def test_load_requests_combines_arguments_and_file(tmp_path: Path) -> None:
    titles_file = tmp_path / "titles.txt"
    titles_file.write_text("# batch\nFrom File | With summary\n\n", encoding="utf-8")

    requests = load_requests(["From Args"], titles_file)

    assert [request.title for request in requests] == ["From Args", "From File"]
    assert requests[1].summary == "With summary"


def test_progress_printer_only_prints_changes() -> None:
    stream = io.StringIO()
    tracker = ProgressTracker()
    tracker.subscribe(ProgressPrinter(stream))
    request = ArticleRequest(title="Printed")

    tracker.begin(request)
    tracker.update(request.request_id, StageKey.TITLE_AND_SUMMARY, StageStatus.in_progress())

    lines = stream.getvalue().splitlines()
    assert lines[0] == "    Printed"
    assert lines[1] == "[~] Printed"
    assert "[~] Generating Title & Summary" in [line.strip() for line in lines]


def test_main_dry_run_writes_articles(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "cli.db"
    env_file = tmp_path / ".env"
    env_file.write_text(f"DB_PATH={db_path}\nAUTHOR_ID=cli-author\n", encoding="utf-8")

    main(
        [
            "Top 10 RPGs",
            "  ",
            "--dry-run",
            "--config-file",
            str(tmp_path / "missing.ini"),
            "--env-file",
            str(env_file),
        ]
    )

    output = capsys.readouterr().out
    assert "1 of 1 article(s) saved" in output
    assert db_path.exists()


def test_main_dry_run_adds_suggested_titles(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "cli.db"
    env_file = tmp_path / ".env"
    env_file.write_text(f"DB_PATH={db_path}\nAUTHOR_ID=cli-author\n", encoding="utf-8")

    main(
        [
            "Top 10 RPGs",
            "--suggest",
            "1",
            "--dry-run",
            "--config-file",
            str(tmp_path / "missing.ini"),
            "--env-file",
            str(env_file),
        ]
    )

    output = capsys.readouterr().out
    assert "2 of 2 article(s) saved" in output
    assert "Article about " in output


def test_main_without_author_exits(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("AUTHOR_ID", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text(f"DB_PATH={tmp_path / 'cli.db'}\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["Title", "--dry-run", "--config-file", str(tmp_path / "none.ini"), "--env-file", str(env_file)])

    assert "logged in" in str(excinfo.value.code)
