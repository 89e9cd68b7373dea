"""Pytest configuration and shared fixtures for hot100 tests."""

from __future__ import annotations

import logging
from datetime import date
from html import escape
from pathlib import Path

import pytest

from hot100.config import Config
from hot100.safe_logging import SafeLogFormatter

# =============================================================================
# Fixture Paths
# =============================================================================

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PAGES_DIR = FIXTURES_DIR / "pages"


def load_fixture(fixture_name: str) -> str:
    """Load a page fixture file as text."""
    fixture_path = PAGES_DIR / fixture_name
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture not found: {fixture_path}")
    return fixture_path.read_text(encoding="utf-8")


# =============================================================================
# Page Builders
# =============================================================================


def chart_row(
    rank: int,
    title: str | None,
    artist: str | None,
    labelled: bool = True,
) -> str:
    """Markup of one chart row; None leaves the title or artist out."""
    rank_markup = f'<span class="c-label a-font-primary-bold-l">\n\t{rank}\n</span>' if labelled else ""
    title_markup = f'<h3 id="title-of-a-story" class="c-title">\n\t{escape(title)}\n</h3>' if title is not None else ""
    if artist is not None:
        artist_markup = f'<span class="c-label a-no-trucate">\n\t{escape(artist)}\n</span>'
    else:
        artist_markup = '<div class="c-label">no artist</div>'
    return (
        '<div class="o-chart-results-list-row-container">'
        '<ul class="o-chart-results-list-row">'
        f'<li class="o-chart-results-list__item">{rank_markup}</li>'
        '<li class="o-chart-results-list__item"><ul><li class="lrv-u-width-100p">'
        f"{title_markup}{artist_markup}"
        "</li></ul></li>"
        "</ul></div>"
    )


def chart_page(
    rows: int = 100,
    labelled: bool = True,
    missing_title_at: int | None = None,
    missing_artist_at: int | None = None,
    label: str = "",
) -> str:
    """Markup of a chart page with ``rows`` entries "Artist N" - "Title N"."""
    body = "".join(
        chart_row(
            rank,
            None if rank == missing_title_at else f"Title {label}{rank}",
            None if rank == missing_artist_at else f"Artist {label}{rank}",
            labelled=labelled,
        )
        for rank in range(1, rows + 1)
    )
    return f'<!DOCTYPE html><html><head><meta charset="UTF-8"></head><body><div class="chart-results-list">{body}</div></body></html>'


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    """Config with every path and the database inside tmp_path."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    cfg = Config()
    cfg.paths.html_dir = tmp_path / "html"
    cfg.paths.jsonl_dir = tmp_path / "jsonl"
    cfg.database.url = f"sqlite:///{tmp_path / 'charts.sqlite'}"
    return cfg


@pytest.fixture
def write_page(config: Config):
    """Write a page into the HTML cache of ``config``."""

    def _write(chart_date: date, markup: str) -> Path:
        config.paths.html_dir.mkdir(parents=True, exist_ok=True)
        path = config.paths.html_dir / f"{chart_date.isoformat()}.html"
        path.write_text(markup, encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop the handlers CLI invocations install on the root logger."""
    root_logger = logging.getLogger()
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if isinstance(handler.formatter, SafeLogFormatter):
            root_logger.removeHandler(handler)
    root_logger.setLevel(level)
