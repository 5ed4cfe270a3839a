"""
portfolio_ingestion.domain.types -- Pure frozen dataclasses for report ingestion.

ZERO I/O. Imports only from portfolio_kernel/domain/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from portfolio_kernel.domain.dtos import DateRange, ExternalRecord, RecordType


class ReportField(str, Enum):
    """Semantic columns of a platform payout export."""

    TRANSACTION_DATE = "transaction_date"
    RECORD_TYPE = "record_type"
    CONFIRMATION_CODE = "confirmation_code"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    NIGHTS = "nights"
    GUEST = "guest"
    LISTING = "listing"
    AMOUNT = "amount"
    PAID_AMOUNT = "paid_amount"
    CURRENCY = "currency"
    GROSS_EARNINGS = "gross_earnings"


class LayoutKind(str, Enum):
    """Known export layouts."""

    HISTORICAL = "historical"  # Reconciled payouts, has a paid-amount column
    PENDING = "pending"  # Forecast of upcoming reservations


@dataclass(frozen=True)
class RowIssue:
    """A data row that was dropped, with the reason."""

    source_row: int
    reason: str
    raw_type: str | None = None

    def __str__(self) -> str:
        return f"Row {self.source_row}: {self.reason}"


@dataclass(frozen=True)
class ScannedRow:
    """
    Outcome of scanning one data row: exactly one of record / issue is set,
    or neither when the row type is not one the engine handles.
    """

    source_row: int
    record: ExternalRecord | None = None
    issue: RowIssue | None = None

    @property
    def ignored(self) -> bool:
        return self.record is None and self.issue is None


@dataclass(frozen=True)
class ParsedReport:
    """Materialized result of parsing a report."""

    layout: LayoutKind
    columns: tuple[str, ...]
    records: tuple[ExternalRecord, ...]
    issues: tuple[RowIssue, ...]
    ignored_count: int
    total_rows: int

    @property
    def skipped_count(self) -> int:
        """Rows not turned into records: malformed, dropped or of an unhandled type."""
        return len(self.issues) + self.ignored_count

    @property
    def errors(self) -> list[str]:
        return [str(issue) for issue in self.issues]

    def count(self, record_type: RecordType) -> int:
        return sum(1 for r in self.records if r.record_type == record_type)

    @property
    def payout_date_range(self) -> DateRange | None:
        return DateRange.covering(r.transaction_date for r in self.records if r.is_payout)
