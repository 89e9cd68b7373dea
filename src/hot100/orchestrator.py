"""
Year-by-year ingestion driver.

For each requested year the orchestrator moves through::

    NOT_STARTED -> INGESTING -> LOADING -> DONE
                       ^            |
                       +------------+  (load failed, retry policy)
                       |
                       +-> INCOMPLETE  (pages could not be fetched)

Ingesting builds ``jsonl/<year>.jsonl`` from the weekly pages, fetching only
the pages missing from the HTML cache. A year whose record file already
exists skips ingestion entirely; a year with pages that could not be fetched
gets no record file and is not loaded, so the next run picks it up again.
Loading hands the record file to the loader, which commits the whole year or
nothing.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from pathlib import Path
from typing import TextIO

from hot100.config import Config, LoadFailurePolicy
from hot100.extractor import ChartExtractor
from hot100.fetcher import PageFetcher
from hot100.loader import ChartLoader
from hot100.records import staging_path
from hot100.weeks import chart_dates, year_range

logger = logging.getLogger(__name__)


class YearState(StrEnum):
    """Progress of one year through the pipeline."""

    NOT_STARTED = "not_started"
    INGESTING = "ingesting"
    LOADING = "loading"
    DONE = "done"
    INCOMPLETE = "incomplete"  # some pages could not be fetched; nothing loaded


@dataclass
class YearReport:
    """Outcome of processing one year."""

    year: int
    state: YearState = YearState.NOT_STARTED
    reused_record_file: bool = False
    weeks_processed: int = 0
    skipped_weeks: list[date] = field(default_factory=list)
    # Subset of skipped_weeks whose page could not be fetched
    unfetched_weeks: list[date] = field(default_factory=list)
    entries_written: int = 0
    rows_loaded: int | None = None
    load_attempts: int = 0
    elapsed_s: float = 0.0

    def __str__(self) -> str:
        status = "✔︎" if self.state == YearState.DONE else "✘"
        base = f"{status} {self.year}: {self.rows_loaded or 0} rows in {self.elapsed_s:.1f}s"
        if self.reused_record_file:
            base += " (record file reused)"
        if self.state == YearState.INCOMPLETE:
            base += f" [{len(self.unfetched_weeks)} pages not fetched, rerun to retry]"
        elif self.skipped_weeks:
            base += f" [{len(self.skipped_weeks)} weeks skipped]"
        return base


WeekCallback = Callable[[int, date], None]


class Orchestrator:
    """Drives fetch → extract → record file → load for a range of years."""

    def __init__(
        self,
        config: Config,
        fetcher: PageFetcher | None = None,
        extractor: ChartExtractor | None = None,
        loader: ChartLoader | None = None,
    ):
        self.config = config
        self.fetcher = fetcher or PageFetcher(config.http, config.paths.html_dir)
        self.extractor = extractor or ChartExtractor(config.ingest.expected_entries)
        self.loader = loader or ChartLoader(config.database)

    def close(self) -> None:
        self.fetcher.close()

    def __enter__(self) -> Orchestrator:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # pyright: ignore[reportMissingParameterType, reportUnknownParameterType]
        self.close()

    def dates_for(self, year: int) -> list[date]:
        return list(
            chart_dates(
                year,
                first_chart_date=self.config.ingest.first_chart_date,
                skip_dates=self.config.ingest.skip_dates,
            )
        )

    def run(
        self,
        start_year: int,
        end_year: int | None = None,
        on_week: WeekCallback | None = None,
    ) -> list[YearReport]:
        """
        Ingest and load every year from ``start_year`` to ``end_year`` inclusive.

        Errors that the failure policy does not absorb propagate and stop the run;
        years finished before that stay committed.
        """
        years = year_range(start_year, end_year)
        self.loader.ensure_schema()
        return [self.process_year(year, on_week) for year in years]

    def process_year(self, year: int, on_week: WeekCallback | None = None) -> YearReport:
        report = YearReport(year=year)
        record_path = self.config.jsonl_path(year)
        policy = self.config.ingest.on_load_failure
        started = time.monotonic()

        if record_path.exists():
            report.reused_record_file = True
            logger.info(f"Record file {record_path} exists, skipping ingestion of {year}")
        elif not self.ingest_year(year, record_path, report, on_week):
            return self._incomplete(report, started)

        while True:
            report.state = YearState.LOADING
            report.load_attempts += 1
            try:
                report.rows_loaded = self.loader.load(record_path)
                break
            except Exception as e:
                retries_left = self.config.ingest.max_load_retries - (report.load_attempts - 1)
                if policy is LoadFailurePolicy.HALT or retries_left <= 0:
                    logger.error(f"Loading {year} failed, giving up: {e}")
                    raise
                logger.warning(
                    f"Loading {year} failed ({e}); deleting {record_path} and re-ingesting "
                    f"({retries_left} retries left)"
                )
                record_path.unlink(missing_ok=True)
                if not self.ingest_year(year, record_path, report, on_week):
                    return self._incomplete(report, started)

        report.state = YearState.DONE
        report.elapsed_s = time.monotonic() - started
        logger.info(f"Year {year} done in {report.elapsed_s:.1f}s")
        return report

    def _incomplete(self, report: YearReport, started: float) -> YearReport:
        report.state = YearState.INCOMPLETE
        report.elapsed_s = time.monotonic() - started
        missing = ", ".join(d.isoformat() for d in report.unfetched_weeks)
        logger.error(f"Year {report.year} not loaded, pages missing for: {missing}")
        return report

    def ingest_year(
        self,
        year: int,
        record_path: Path,
        report: YearReport,
        on_week: WeekCallback | None = None,
    ) -> bool:
        """
        Build the record file for ``year`` from the weekly pages.

        Entries are appended to a staging file which only becomes the record file
        once every week was processed, so an interrupted ingestion is redone.
        Weeks whose page is rejected contribute no entries and are listed in
        ``report.skipped_weeks``. Weeks whose page cannot be fetched are also
        listed in ``report.unfetched_weeks`` and keep the staging file from
        being promoted, so the next run fetches them again.

        Returns:
            True if the record file was written
        """
        report.state = YearState.INGESTING
        report.weeks_processed = 0
        report.entries_written = 0
        report.skipped_weeks = []
        report.unfetched_weeks = []

        record_path.parent.mkdir(parents=True, exist_ok=True)
        staging = staging_path(record_path)

        logger.info(f"Writing parsed HTML to {record_path}...")
        with staging.open("w", encoding="utf-8") as out:
            for chart_date in self.dates_for(year):
                written = self._ingest_week(chart_date, out)
                report.weeks_processed += 1
                if written is None:
                    report.unfetched_weeks.append(chart_date)
                    written = 0
                if written == 0:
                    report.skipped_weeks.append(chart_date)
                report.entries_written += written
                if on_week is not None:
                    on_week(year, chart_date)

        if report.unfetched_weeks:
            return False

        staging.replace(record_path)

        if report.skipped_weeks:
            skipped = ", ".join(d.isoformat() for d in report.skipped_weeks)
            logger.warning(f"{year}: no entries for {len(report.skipped_weeks)} weeks: {skipped}")
        return True

    def _ingest_week(self, chart_date: date, out: TextIO) -> int | None:
        """Append the entries of one week; None if its page could not be fetched."""
        page_path = self.fetcher.cache_path(chart_date)
        if not page_path.exists():
            if self.fetcher.fetch(chart_date) is None:
                logger.warning(f"No page for {chart_date.isoformat()}, skipping week")
                return None

        written = 0
        for entry in self.extractor.extract(page_path):
            out.write(entry.to_line())
            out.write("\n")
            written += 1

        logger.info(f"Process done for {chart_date.isoformat()}.")
        return written
