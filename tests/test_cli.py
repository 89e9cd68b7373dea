"""Tests for the hot100 command line."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine, text

from hot100.cli import hot100
from hot100.weeks import chart_dates
from tests.conftest import chart_page


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("HOT100_DATABASE_URL", raising=False)
    (tmp_path / "hot100.toml").write_text("[ingest]\nexpected_entries = 3\n\n[logging]\nlevel = \"WARNING\"\n")
    return tmp_path


def invoke(workdir: Path, *args: str):  # pyright: ignore[reportUnknownParameterType]
    """Run the CLI with every path and the database inside ``workdir``."""
    return CliRunner().invoke(
        hot100,
        [
            "--config",
            str(workdir / "hot100.toml"),
            "--html-dir",
            str(workdir / "html"),
            "--jsonl-dir",
            str(workdir / "jsonl"),
            "--db-url",
            f"sqlite:///{workdir / 'charts.sqlite'}",
            *args,
        ],
    )


def cache_pages(workdir: Path, year: int, markup_for=None) -> list[date]:  # pyright: ignore[reportMissingParameterType]
    html_dir = workdir / "html"
    html_dir.mkdir(parents=True, exist_ok=True)
    dates = list(chart_dates(year, first_chart_date=date(1958, 8, 9)))
    for chart_date in dates:
        markup = markup_for(chart_date) if markup_for else chart_page(rows=3)
        (html_dir / f"{chart_date.isoformat()}.html").write_text(markup, encoding="utf-8")
    return dates


def count_rows(workdir: Path) -> int:
    engine = create_engine(f"sqlite:///{workdir / 'charts.sqlite'}")
    try:
        with engine.connect() as conn:
            return conn.execute(text("SELECT COUNT(*) FROM raw_chart")).scalar_one()
    finally:
        engine.dispose()


class TestArguments:
    @pytest.mark.parametrize(
        "args",
        [
            ["run"],
            ["run", "nineteen-eighty"],
            ["run", "1957"],
            ["run", "2023"],
            ["run", "1990", "1980"],
            ["weeks", "1950"],
            ["load", "x"],
        ],
    )
    def test_invalid_years_are_usage_errors(self, workdir, args):
        result = invoke(workdir, *args)

        assert result.exit_code == 2
        # Nothing was fetched or written
        assert not (workdir / "html").exists()
        assert not (workdir / "jsonl").exists()

    def test_invalid_policy(self, workdir):
        result = invoke(workdir, "run", "1984", "--on-load-failure", "ignore")

        assert result.exit_code == 2


class TestWeeks:
    def test_weeks_of_regular_year(self, workdir):
        result = invoke(workdir, "weeks", "1984")

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert len(lines) == 52
        assert lines[0] == "1984-01-07  1984-W01"
        assert lines[-1] == "1984-12-29  1984-W52"

    def test_weeks_of_first_year(self, workdir):
        result = invoke(workdir, "weeks", "1958")

        assert result.exit_code == 0
        assert result.output.splitlines()[0] == "1958-08-09  1958-W32"

    def test_weeks_skip_missing_chart(self, workdir):
        result = invoke(workdir, "weeks", "1976")

        assert result.exit_code == 0
        assert "1977-01-01" not in result.output


class TestRun:
    def test_run_from_cached_pages(self, workdir):
        dates = cache_pages(workdir, 1958)

        result = invoke(workdir, "run", "1958", "--no-progress")

        assert result.exit_code == 0, result.output
        assert f"1958: {len(dates) * 3} rows" in result.output
        assert count_rows(workdir) == len(dates) * 3
        assert (workdir / "jsonl" / "1958.jsonl").exists()

    def test_run_twice_reuses_record_file(self, workdir):
        cache_pages(workdir, 1958)
        invoke(workdir, "run", "1958", "--no-progress")

        result = invoke(workdir, "run", "1958", "--no-progress")

        assert result.exit_code == 0, result.output
        assert "record file reused" in result.output

    def test_run_with_unfetchable_page_fails(self, workdir, httpx_mock):
        cache_pages(workdir, 1958)
        (workdir / "html" / "1958-09-13.html").unlink()
        httpx_mock.add_response(
            url="https://www.billboard.com/charts/hot-100/1958-09-13/", status_code=503
        )

        result = invoke(workdir, "run", "1958", "--no-progress")

        assert result.exit_code == 1
        assert "1 pages not fetched" in result.output
        assert not (workdir / "jsonl" / "1958.jsonl").exists()

    def test_run_stops_on_structural_drift(self, workdir):
        broken = date(1958, 9, 6)
        cache_pages(
            workdir,
            1958,
            lambda d: chart_page(rows=3, missing_artist_at=2) if d == broken else chart_page(rows=3),
        )

        result = invoke(workdir, "run", "1958", "--no-progress")

        assert result.exit_code == 1
        assert "ChartStructureError" in result.output
        assert not (workdir / "jsonl" / "1958.jsonl").exists()


class TestExtract:
    def test_extract_prints_entries(self, workdir):
        cache_pages(workdir, 1958)

        result = invoke(workdir, "extract", "1958-08-09")

        assert result.exit_code == 0, result.output
        assert "  1. Artist 1 - Title 1" in result.output
        assert "  3. Artist 3 - Title 3" in result.output

    def test_extract_json(self, workdir):
        cache_pages(workdir, 1958)

        result = invoke(workdir, "extract", "1958-08-09", "--json")

        assert result.exit_code == 0, result.output
        records = [json.loads(line) for line in result.output.splitlines()]
        assert records[0] == [1958, 32, "1", "Artist 1", "Title 1"]

    def test_extract_without_cached_page(self, workdir):
        result = invoke(workdir, "extract", "1958-08-09")

        assert result.exit_code == 2

    def test_extract_rejected_page(self, workdir):
        (workdir / "html").mkdir()
        (workdir / "html" / "1958-08-09.html").write_text(chart_page(rows=5))

        result = invoke(workdir, "extract", "1958-08-09")

        assert result.exit_code == 2


class TestLoad:
    def test_load_record_file(self, workdir):
        (workdir / "jsonl").mkdir()
        (workdir / "jsonl" / "1984.jsonl").write_text(
            '[1984, 7, "1", "Culture Club", "Karma Chameleon"]\n'
            '[1984, 7, "99", "The Motels", "Remember The Nights"]\n'
        )

        result = invoke(workdir, "load", "1984")

        assert result.exit_code == 0, result.output
        assert "Loaded 2 rows for 1984" in result.output
        assert count_rows(workdir) == 2

    def test_load_without_record_file(self, workdir):
        result = invoke(workdir, "load", "1984")

        assert result.exit_code == 2

    def test_load_malformed_record_file(self, workdir):
        (workdir / "jsonl").mkdir()
        (workdir / "jsonl" / "1984.jsonl").write_text('[1984, 7, "1", "A", "T"]\nnot json\n')

        result = invoke(workdir, "load", "1984")

        assert result.exit_code == 1
        assert "rolled back" in result.output
        assert count_rows(workdir) == 0


def test_init_db(workdir):
    result = invoke(workdir, "init-db")

    assert result.exit_code == 0, result.output
    assert count_rows(workdir) == 0
