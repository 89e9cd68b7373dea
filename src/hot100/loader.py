"""
Loads per-year record files into the chart table.

Each record file is loaded inside a single transaction: either every row of
the year is committed or, on any parse or insert error, nothing is. The
connection is opened for the load and closed afterwards (no pooling), so a
year never shares a connection with another.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from hot100.config import DatabaseConfig
from hot100.records import ChartRecord, RecordFormatError, read_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionCorrection:
    """Overrides the position of one title in one chart week."""

    year: int
    week: int
    title: str
    position: int

    def applies_to(self, record: ChartRecord) -> bool:
        year, week, _, _, title = record
        return year == self.year and week == self.week and title == self.title


# Upstream publication errors
KNOWN_CORRECTIONS: tuple[PositionCorrection, ...] = (
    PositionCorrection(year=1984, week=7, title="Remember The Nights", position=87),
)


def apply_corrections(
    record: ChartRecord, corrections: Sequence[PositionCorrection] = KNOWN_CORRECTIONS
) -> ChartRecord:
    for correction in corrections:
        if correction.applies_to(record):
            year, week, _, artist, title = record
            return (year, week, correction.position, artist, title)
    return record


def position_value(position: int | str) -> int:
    """Database value of a position; rank labels are numerals."""
    if isinstance(position, int):
        return position
    try:
        return int(position.strip())
    except ValueError as e:
        raise RecordFormatError(f"Position is not a number: {position!r}") from e


class ChartLoader:
    """Bulk-loads record files into ``database.table``."""

    def __init__(
        self,
        config: DatabaseConfig,
        corrections: Sequence[PositionCorrection] = KNOWN_CORRECTIONS,
    ):
        self.config = config
        self.corrections = corrections

    def _create_engine(self) -> Engine:
        return create_engine(self.config.url, echo=self.config.echo, poolclass=NullPool)

    def ensure_schema(self) -> None:
        """Create the chart table if it does not exist yet."""
        engine = self._create_engine()
        try:
            with engine.begin() as conn:
                conn.execute(
                    text(f"""
                        CREATE TABLE IF NOT EXISTS {self.config.table} (
                            year INTEGER NOT NULL,
                            week INTEGER NOT NULL,
                            position INTEGER NOT NULL,
                            artist TEXT NOT NULL,
                            title TEXT NOT NULL
                        )
                    """)
                )
        finally:
            engine.dispose()

    def load(self, record_path: Path) -> int | None:
        """
        Insert every record of ``record_path`` in one transaction.

        Returns:
            Number of inserted rows, or None if the record file does not exist.

        Raises:
            RecordFormatError: A line is not a valid record (transaction rolled back)
            sqlalchemy.exc.SQLAlchemyError: An insert failed (transaction rolled back)
        """
        if not record_path.exists():
            logger.error(f"JSONL file {record_path} does not exist!")
            return None

        insert = text(
            f"INSERT INTO {self.config.table} (year, week, position, artist, title) "
            "VALUES (:year, :week, :position, :artist, :title)"
        )

        engine = self._create_engine()
        try:
            with engine.connect() as conn:
                transaction = conn.begin()
                logger.info(f"Inserting data from {record_path} to {self.config.url}...")
                inserted = 0
                try:
                    for record in read_records(record_path):
                        year, week, position, artist, title = apply_corrections(
                            record, self.corrections
                        )
                        conn.execute(
                            insert,
                            {
                                "year": year,
                                "week": week,
                                "position": position_value(position),
                                "artist": artist,
                                "title": title,
                            },
                        )
                        inserted += 1
                    transaction.commit()
                except Exception as e:
                    transaction.rollback()
                    logger.error(
                        f"Rolled back load of {record_path} after {inserted} rows: {e}"
                    )
                    raise
        finally:
            engine.dispose()

        logger.info(f"Committed {inserted} rows from {record_path}")
        return inserted


## Tests


def test_apply_corrections():
    record: ChartRecord = (1984, 7, "99", "Some Artist", "Remember The Nights")

    assert apply_corrections(record) == (1984, 7, 87, "Some Artist", "Remember The Nights")


def test_apply_corrections_leaves_other_records():
    other_week: ChartRecord = (1984, 8, "99", "Some Artist", "Remember The Nights")
    other_title: ChartRecord = (1984, 7, "99", "Some Artist", "Remember The Days")

    assert apply_corrections(other_week) == other_week
    assert apply_corrections(other_title) == other_title


def test_position_value():
    import pytest

    assert position_value(5) == 5
    assert position_value(" 42 ") == 42
    with pytest.raises(RecordFormatError):
        position_value("NEW")
