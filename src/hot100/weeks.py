"""Week-ending dates of the weekly chart.

Charts are dated by the Saturday that ends their ISO week, so a year's charts
run from the Saturday of ISO week 1 up to (excluding) the Saturday of the next
year's ISO week 1. Every date produced for ``year`` therefore has
``isocalendar().year == year``; early January Saturdays can belong to the
previous ISO year and late December ones to the next.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, timedelta

CHART_WEEKDAY = 6  # ISO weekday: Saturday
WEEK = timedelta(days=7)


def first_chart_date_of(year: int) -> date:
    """Saturday of ISO week 1 of ``year``."""
    return date.fromisocalendar(year, 1, CHART_WEEKDAY)


def chart_dates(
    year: int,
    first_chart_date: date | None = None,
    skip_dates: Iterable[date] = (),
) -> Iterator[date]:
    """
    Yield the week-ending dates of ``year`` in chronological order.

    Args:
        year: ISO week-year
        first_chart_date: Earliest date with a published chart; weeks before it
            are not generated (the chart's first year starts mid-year)
        skip_dates: Week-ending dates with no published chart

    Raises:
        ValueError: If ``year`` is outside the range supported by ``datetime``
    """
    current = first_chart_date_of(year)
    end = first_chart_date_of(year + 1)
    skipped = set(skip_dates)

    if first_chart_date is not None and current < first_chart_date:
        # Align to the first Saturday on or after first_chart_date
        offset = (CHART_WEEKDAY - first_chart_date.isoweekday()) % 7
        current = first_chart_date + timedelta(days=offset)

    while current < end:
        if current not in skipped:
            yield current
        current += WEEK


def iso_week(chart_date: date) -> tuple[int, int]:
    """Return the (ISO week-year, ISO week number) of a chart date."""
    iso = chart_date.isocalendar()
    return iso.year, iso.week


def year_range(start_year: int, end_year: int | None = None) -> range:
    """Inclusive range of years; a single year when ``end_year`` is omitted."""
    if end_year is None:
        end_year = start_year
    if end_year < start_year:
        raise ValueError(f"End year {end_year} is before start year {start_year}")
    return range(start_year, end_year + 1)


## Tests


def test_chart_dates_regular_year():
    dates = list(chart_dates(1984))

    assert dates[0] == date(1984, 1, 7)
    assert dates[-1] == date(1984, 12, 29)
    assert len(dates) == 52


def test_chart_dates_53_week_year():
    # 2020 starts on a Wednesday, so its ISO year has 53 weeks
    dates = list(chart_dates(2020))

    assert len(dates) == 53
    assert dates[0] == date(2020, 1, 4)
    assert dates[-1] == date(2021, 1, 2)
    assert iso_week(dates[-1]) == (2020, 53)


def test_chart_dates_first_chart_date():
    dates = list(chart_dates(1958, first_chart_date=date(1958, 8, 9)))

    assert dates[0] == date(1958, 8, 9)
    assert iso_week(dates[0]) == (1958, 32)


def test_chart_dates_first_chart_date_not_a_saturday():
    # 1958-08-04 is a Monday; the first week-ending date is that Saturday
    dates = list(chart_dates(1958, first_chart_date=date(1958, 8, 4)))

    assert dates[0] == date(1958, 8, 9)


def test_chart_dates_skip_dates():
    dates = list(chart_dates(1976, skip_dates=[date(1977, 1, 1)]))

    assert date(1977, 1, 1) not in dates
    assert dates[-1] == date(1976, 12, 25)


def test_year_range():
    assert list(year_range(1984)) == [1984]
    assert list(year_range(1984, 1986)) == [1984, 1985, 1986]

    import pytest

    with pytest.raises(ValueError):
        year_range(1986, 1984)
