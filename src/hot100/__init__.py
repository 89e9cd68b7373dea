__all__ = (
    "main",
    "Config",
    "LoadFailurePolicy",
    # Fetch / extract
    "PageFetcher",
    "ChartExtractor",
    "ChartLayout",
    "ChartStructureError",
    # Record files
    "ChartEntry",
    "RecordFormatError",
    # Load
    "ChartLoader",
    "PositionCorrection",
    "KNOWN_CORRECTIONS",
    # Orchestration
    "Orchestrator",
    "YearReport",
    "YearState",
    "chart_dates",
)

from hot100.cli import main
from hot100.config import Config, LoadFailurePolicy
from hot100.extractor import ChartExtractor, ChartLayout, ChartStructureError
from hot100.fetcher import PageFetcher
from hot100.loader import KNOWN_CORRECTIONS, ChartLoader, PositionCorrection
from hot100.orchestrator import Orchestrator, YearReport, YearState
from hot100.records import ChartEntry, RecordFormatError
from hot100.weeks import chart_dates
