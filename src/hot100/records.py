from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

# (year, week, position, artist, title); position is text when read from a rank label
ChartRecord = tuple[int, int, int | str, str, str]


class RecordFormatError(ValueError):
    """A record file line is not a valid five-field chart record."""


@dataclass(frozen=True)
class ChartEntry:
    """One ranked entry of a weekly chart."""

    year: int  # ISO week-year
    week: int  # ISO week number
    position: int | str
    artist: str
    title: str

    def as_record(self) -> ChartRecord:
        """Convert to the five-field record stored in record files."""
        return (self.year, self.week, self.position, self.artist, self.title)

    def to_line(self) -> str:
        """Serialize as one record file line (without the newline)."""
        return json.dumps(list(self.as_record()), ensure_ascii=False)


def parse_line(line: str, line_number: int | None = None) -> ChartRecord:
    """
    Parse one record file line.

    Raises:
        RecordFormatError: If the line is not a JSON array of
            [int, int, int | str, str, str]
    """
    where = f" (line {line_number})" if line_number is not None else ""
    try:
        values = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordFormatError(f"Invalid JSON{where}: {e}") from e

    if not isinstance(values, list) or len(values) != 5:
        raise RecordFormatError(f"Expected a list of 5 values{where}, got {line.strip()!r}")

    year, week, position, artist, title = values
    # bool is an int subclass; reject it explicitly
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (year, week)):
        raise RecordFormatError(f"Year and week must be integers{where}: {line.strip()!r}")
    if isinstance(position, bool) or not isinstance(position, int | str):
        raise RecordFormatError(f"Position must be an integer or text{where}: {line.strip()!r}")
    if not isinstance(artist, str) or not isinstance(title, str):
        raise RecordFormatError(f"Artist and title must be text{where}: {line.strip()!r}")

    return (year, week, position, artist, title)


def read_records(path: Path) -> Iterator[ChartRecord]:
    """Lazily parse every non-blank line of a record file."""
    with path.open(encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            yield parse_line(line, line_number)


def staging_path(record_path: Path) -> Path:
    """Path a record file is built under before it is complete."""
    return record_path.with_name(record_path.name + ".part")


## Tests


def test_entry_line_round_trip():
    entry = ChartEntry(1984, 7, "99", "Some Artist", "Remember The Nights")

    assert parse_line(entry.to_line()) == (1984, 7, "99", "Some Artist", "Remember The Nights")


def test_entry_line_keeps_unicode():
    entry = ChartEntry(2017, 3, 1, "Beyoncé", "Déjà Vu")

    assert "Beyoncé" in entry.to_line()


def test_parse_line_rejects_malformed():
    import pytest

    for line in ("not json", "[1, 2, 3]", '{"year": 1984}', '[1984, "7", 1, "A", "T"]'):
        with pytest.raises(RecordFormatError):
            parse_line(line)


def test_staging_path():
    assert staging_path(Path("jsonl/1984.jsonl")) == Path("jsonl/1984.jsonl.part")
