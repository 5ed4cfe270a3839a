"""Source adapters for report ingestion (file I/O only, no DB)."""

from portfolio_ingestion.adapters.base import ReportSource, SourceAdapter, SourceProbe
from portfolio_ingestion.adapters.csv_adapter import CsvReportAdapter

__all__ = [
    "CsvReportAdapter",
    "ReportSource",
    "SourceAdapter",
    "SourceProbe",
]
