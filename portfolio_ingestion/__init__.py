"""
portfolio_ingestion -- Platform payout report ingestion.

Decodes exported reports, detects their layout from the header row and
normalizes each data row into an ExternalRecord.  Nothing here touches the
database.

Architecture:
    portfolio_ingestion/ is a top-level package importing only from
    portfolio_kernel.  Nothing in kernel/ or engines/ imports from it.
"""

from portfolio_ingestion.domain.layouts import (
    HISTORICAL_LAYOUT,
    KNOWN_LAYOUTS,
    PENDING_LAYOUT,
    ReportLayout,
    detect_layout,
)
from portfolio_ingestion.domain.types import LayoutKind, ParsedReport, ReportField, RowIssue
from portfolio_ingestion.normalizer import NormalizedReport, parse_report

__all__ = [
    "HISTORICAL_LAYOUT",
    "KNOWN_LAYOUTS",
    "LayoutKind",
    "NormalizedReport",
    "PENDING_LAYOUT",
    "ParsedReport",
    "ReportField",
    "ReportLayout",
    "RowIssue",
    "detect_layout",
    "parse_report",
]
