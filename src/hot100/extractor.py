from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from datetime import date
from enum import StrEnum
from pathlib import Path

from bs4 import BeautifulSoup, Tag

from hot100.records import ChartEntry
from hot100.weeks import iso_week

logger = logging.getLogger(__name__)

ROW_SELECTOR = "div.o-chart-results-list-row-container"
RANK_SELECTOR = "li.o-chart-results-list__item:first-child > span"
TITLE_SELECTOR = "h3#title-of-a-story"


class ChartStructureError(ValueError):
    """The page no longer has the structure the extractor relies on."""


class ChartLayout(StrEnum):
    """Known chart page layouts."""

    RANK_LABELLED = "rank_labelled"  # each row carries its rank as text
    ORDER_INFERRED = "order_inferred"  # rank is the row's position on the page


def clean_text(text: str) -> str:
    """Collapse whitespace runs and strip."""
    return re.sub(r"\s+", " ", text).strip()


def detect_layout(rows: Sequence[Tag]) -> ChartLayout:
    """Pick the layout from the first row: a numeric rank label marks the labelled layout."""
    if not rows:
        return ChartLayout.ORDER_INFERRED
    rank = find_rank(rows[0])
    if rank is not None and clean_text(rank.get_text()).isdigit():
        return ChartLayout.RANK_LABELLED
    return ChartLayout.ORDER_INFERRED


def find_title(row: Tag) -> Tag | None:
    return row.select_one(TITLE_SELECTOR)


def find_artist(title: Tag) -> Tag | None:
    """The artist is the element right after the title, and must be a span."""
    sibling = title.find_next_sibling()
    if isinstance(sibling, Tag) and sibling.name == "span":
        return sibling
    return None


def find_rank(row: Tag) -> Tag | None:
    return row.select_one(RANK_SELECTOR)


class ChartExtractor:
    """
    Extracts chart entries from cached chart pages.

    A page must list exactly ``expected_entries`` rows. Pages with another row
    count are rejected as a whole (logged, nothing yielded). A row whose title,
    artist or rank label cannot be found raises `ChartStructureError`: the
    page layout changed and continuing would write wrong data.
    """

    def __init__(self, expected_entries: int = 100):
        self.expected_entries = expected_entries

    def extract(self, page_path: Path) -> Iterator[ChartEntry]:
        """
        Lazily yield the entries of a cached page, in page order.

        The chart date is taken from the file name (``<ISO date>.html``).
        """
        chart_date = date.fromisoformat(page_path.stem)
        logger.info(f"Parsing {page_path}...")
        # Raw bytes: BeautifulSoup detects the encoding from the page itself
        markup = page_path.read_bytes()
        yield from self.parse_html(markup, chart_date)

    def parse_html(self, markup: str | bytes, chart_date: date) -> Iterator[ChartEntry]:
        soup = BeautifulSoup(markup, "html.parser")
        rows = soup.select(ROW_SELECTOR)

        if len(rows) != self.expected_entries:
            logger.error(
                f"Unexpected HTML for {chart_date.isoformat()}: "
                f"found {len(rows)} rows, expected {self.expected_entries}"
            )
            return

        year, week = iso_week(chart_date)
        layout = detect_layout(rows)
        logger.debug(f"Detected {layout} layout for {chart_date.isoformat()}")

        for index, row in enumerate(rows, start=1):
            position, artist, title = self._parse_row(row, index, layout, chart_date)
            yield ChartEntry(year=year, week=week, position=position, artist=artist, title=title)

    def _parse_row(
        self, row: Tag, index: int, layout: ChartLayout, chart_date: date
    ) -> tuple[int | str, str, str]:
        title_el = find_title(row)
        artist_el = find_artist(title_el) if title_el is not None else None

        title = clean_text(title_el.get_text()) if title_el is not None else ""
        artist = clean_text(artist_el.get_text()) if artist_el is not None else ""

        position: int | str
        if layout is ChartLayout.RANK_LABELLED:
            rank_el = find_rank(row)
            position = clean_text(rank_el.get_text()) if rank_el is not None else ""
            if position and position != str(index):
                logger.warning(
                    f"Rank label {position!r} on row {index} of {chart_date.isoformat()}"
                )
        else:
            position = index

        if position == "" or not title or not artist:
            logger.error(
                f"Unexpected HTML in row {index} of {chart_date.isoformat()}: "
                f"position={position!r} title={title!r} artist={artist!r}"
            )
            raise ChartStructureError(
                f"Row {index} of the {chart_date.isoformat()} chart is missing "
                f"its position, title or artist"
            )

        return position, artist, title
