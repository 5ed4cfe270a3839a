"""
portfolio_services.reconciliation_service -- Post-write reconciliation.

Responsibility:
    Re-reads what was actually persisted for a source tag and range and
    compares it, date by date, with the totals the source report says
    should be there.  Discrepancies are logged as warnings and returned;
    nothing is rolled back.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from uuid import UUID

from portfolio_engines.reconciliation import ReconciliationChecker, ReconciliationReport
from portfolio_kernel.domain.dtos import DateRange
from portfolio_kernel.domain.repository import LedgerStore
from portfolio_kernel.logging_config import get_logger

logger = get_logger("services.reconciliation")


class ReconciliationService:
    def __init__(
        self,
        store: LedgerStore,
        checker: ReconciliationChecker | None = None,
    ):
        self.store = store
        self.checker = checker or ReconciliationChecker()

    def validate(
        self,
        owner_id: UUID,
        source_tag: str,
        date_range: DateRange,
        expected_by_date: Mapping[date, Decimal],
    ) -> ReconciliationReport:
        """Compare persisted entries in ``date_range`` with the expected totals."""
        entries = self.store.list_entries(owner_id, source_tag, date_range)
        report = self.checker.check(expected_by_date=dict(expected_by_date), entries=entries)

        for line in report.discrepancies:
            logger.warning(
                "reconciliation_discrepancy",
                extra={
                    "source_tag": source_tag,
                    "date": line.date,
                    "source_total": line.source_total,
                    "distributed_total": line.distributed_total,
                    "difference": line.difference,
                },
            )

        logger.info(
            "reconciliation_completed",
            extra={
                "source_tag": source_tag,
                "dates_checked": len(report.lines),
                "discrepancy_count": len(report.discrepancies),
            },
        )
        return report
