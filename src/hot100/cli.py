from __future__ import annotations

import logging
import sys
from datetime import date
from pathlib import Path

import click
from rich.progress import Progress, TaskID

from hot100.config import Config, LoadFailurePolicy
from hot100.console import get_console, make_progress
from hot100.safe_logging import configure_safe_logging

logger = logging.getLogger(__name__)


class ExitCode:
    """Standard exit codes for CLI commands."""

    SUCCESS = 0
    ERROR = 1
    NO_RESULTS = 2


def log_level_is_debug() -> bool:
    return logging.getLogger().isEnabledFor(logging.DEBUG)


def _check_year(config: Config, year: int, param: str) -> None:
    low, high = config.ingest.min_year, config.ingest.max_year
    if not low <= year <= high:
        raise click.BadParameter(f"{year} is outside {low}-{high}", param_hint=param)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration TOML file",
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v for INFO, -vv for DEBUG)")
@click.option("--html-dir", type=click.Path(file_okay=False, path_type=Path), help="HTML cache directory")
@click.option("--jsonl-dir", type=click.Path(file_okay=False, path_type=Path), help="Record file directory")
@click.option("--db-url", help="SQLAlchemy database URL")
@click.pass_context
def hot100(
    ctx: click.Context,
    config_path: Path | None,
    verbose: int,
    html_dir: Path | None,
    jsonl_dir: Path | None,
    db_url: str | None,
) -> None:
    """
    Scrape the weekly Hot 100 and load it into a database, one year at a time.
    """
    # Load config (TOML + env vars)
    cfg = Config.load(config_path)

    # Apply CLI overrides (highest precedence: CLI > Env > Config File > Defaults)
    if html_dir:
        cfg.paths.html_dir = html_dir
    if jsonl_dir:
        cfg.paths.jsonl_dir = jsonl_dir
    if db_url:
        cfg.database.url = db_url

    if verbose > 0:
        log_level = logging.DEBUG if verbose >= 2 else logging.INFO
    else:
        level_str = cfg.logging.level.upper()
        log_level = getattr(logging, level_str, logging.INFO)

    configure_safe_logging(
        level=log_level,
        format_string=cfg.logging.format,
        hash_paths=cfg.logging.hash_paths,
        quiet_libraries=verbose < 3,
    )
    if config_path:
        logger.info(f"Loaded config from {config_path}")
    logger.debug(f"Logging configured: level={logging.getLevelName(log_level)}")

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@hot100.command()
@click.argument("start_year", type=int)
@click.argument("end_year", type=int, required=False)
@click.option(
    "--on-load-failure",
    type=click.Choice([p.value for p in LoadFailurePolicy]),
    help="retry: delete the record file and re-ingest the year; halt: stop the run",
)
@click.option("--max-load-retries", type=click.IntRange(min=0), help="Re-ingestions per year")
@click.option("--no-progress", is_flag=True, help="Do not show a progress bar")
@click.pass_context
def run(
    ctx: click.Context,
    start_year: int,
    end_year: int | None,
    on_load_failure: str | None,
    max_load_retries: int | None,
    no_progress: bool,
) -> None:
    """
    Ingest and load one year, or every year from START_YEAR to END_YEAR.

    Examples:
      hot100 run 1984
      hot100 run 1958 1969 --on-load-failure halt
    """
    from hot100.orchestrator import Orchestrator, YearState

    config: Config = ctx.obj["config"]

    _check_year(config, start_year, "START_YEAR")
    if end_year is not None:
        _check_year(config, end_year, "END_YEAR")
        if end_year < start_year:
            raise click.BadParameter(
                f"{end_year} is before START_YEAR {start_year}", param_hint="END_YEAR"
            )

    if on_load_failure:
        config.ingest.on_load_failure = LoadFailurePolicy(on_load_failure)
    if max_load_retries is not None:
        config.ingest.max_load_retries = max_load_retries

    disable_progress = no_progress or not get_console().is_terminal

    with Orchestrator(config) as orchestrator, make_progress(disable=disable_progress) as progress:
        tracker = _WeekProgress(progress, orchestrator.dates_for)
        try:
            reports = orchestrator.run(start_year, end_year, on_week=tracker)
        except Exception as e:
            logger.error(f"Run failed: {e}", exc_info=log_level_is_debug())
            click.echo(f"✘ {type(e).__name__}: {e}", err=True)
            sys.exit(ExitCode.ERROR)

    for report in reports:
        click.echo(str(report))

    if any(report.state is not YearState.DONE for report in reports):
        sys.exit(ExitCode.ERROR)
    sys.exit(ExitCode.SUCCESS)


class _WeekProgress:
    """Progress bar per year, advanced once per processed week."""

    def __init__(self, progress: Progress, dates_for):  # pyright: ignore[reportMissingParameterType]
        self.progress = progress
        self.dates_for = dates_for
        self.tasks: dict[int, TaskID] = {}
        self.first_dates: dict[int, date] = {}

    def __call__(self, year: int, chart_date: date) -> None:
        if year not in self.tasks:
            dates = self.dates_for(year)
            self.first_dates[year] = dates[0]
            self.tasks[year] = self.progress.add_task(str(year), total=len(dates))
        elif chart_date == self.first_dates[year]:
            # Year is being re-ingested after a failed load
            self.progress.reset(self.tasks[year])
        self.progress.update(
            self.tasks[year], advance=1, description=f"{year} {chart_date.isoformat()}"
        )


@hot100.command()
@click.argument("year", type=int)
@click.pass_context
def weeks(ctx: click.Context, year: int) -> None:
    """List the week-ending chart dates of YEAR."""
    from hot100.orchestrator import Orchestrator
    from hot100.weeks import iso_week

    config: Config = ctx.obj["config"]
    _check_year(config, year, "YEAR")

    with Orchestrator(config) as orchestrator:
        for chart_date in orchestrator.dates_for(year):
            week_year, week = iso_week(chart_date)
            click.echo(f"{chart_date.isoformat()}  {week_year}-W{week:02d}")

    sys.exit(ExitCode.SUCCESS)


@hot100.command()
@click.argument("chart_date", metavar="DATE", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--json", "as_json", is_flag=True, help="Print record file lines")
@click.pass_context
def extract(ctx: click.Context, chart_date, as_json: bool) -> None:  # pyright: ignore[reportMissingParameterType]
    """
    Parse the cached page of DATE (YYYY-MM-DD) and print its entries.

    Only reads the HTML cache; run `hot100 run` first to download pages.
    """
    from hot100.extractor import ChartExtractor, ChartStructureError

    config: Config = ctx.obj["config"]
    page_path = config.paths.html_dir / f"{chart_date.date().isoformat()}.html"

    if not page_path.exists():
        click.echo(f"No cached page at {page_path}", err=True)
        sys.exit(ExitCode.NO_RESULTS)

    extractor = ChartExtractor(config.ingest.expected_entries)
    count = 0
    try:
        for entry in extractor.extract(page_path):
            count += 1
            if as_json:
                click.echo(entry.to_line())
            else:
                click.echo(f"  {entry.position:>3}. {entry.artist} - {entry.title}")
    except ChartStructureError as e:
        click.echo(f"✘ {e}", err=True)
        sys.exit(ExitCode.ERROR)

    if count == 0:
        click.echo(f"No entries extracted from {page_path}", err=True)
        sys.exit(ExitCode.NO_RESULTS)

    sys.exit(ExitCode.SUCCESS)


@hot100.command()
@click.argument("year", type=int)
@click.pass_context
def load(ctx: click.Context, year: int) -> None:
    """Load the existing record file of YEAR into the database."""
    from hot100.loader import ChartLoader

    config: Config = ctx.obj["config"]
    loader = ChartLoader(config.database)
    loader.ensure_schema()

    try:
        rows = loader.load(config.jsonl_path(year))
    except Exception as e:
        click.echo(f"✘ Load of {year} rolled back: {e}", err=True)
        sys.exit(ExitCode.ERROR)

    if rows is None:
        click.echo(f"No record file for {year}", err=True)
        sys.exit(ExitCode.NO_RESULTS)

    click.echo(f"✔︎ Loaded {rows} rows for {year}")
    sys.exit(ExitCode.SUCCESS)


@hot100.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the chart table if it does not exist."""
    from hot100.loader import ChartLoader

    config: Config = ctx.obj["config"]
    ChartLoader(config.database).ensure_schema()
    click.echo(f"✔︎ Table {config.database.table} is ready")
    sys.exit(ExitCode.SUCCESS)


def main() -> None:
    """Entry point for the hot100 CLI."""
    hot100()


if __name__ == "__main__":
    main()
