"""
ReconciliationChecker -- Pure engine comparing source totals with ledger totals.

Architecture: portfolio_engines -- pure calculation, zero I/O, zero DB access.
Inputs are the expected per-date totals from attribution and the ledger
entries the service re-read after persisting.

Invariants enforced:
    - A date is a discrepancy iff |distributed - source| > tolerance
      (strictly greater; a difference equal to the tolerance passes).
    - Every date present on either side gets a line.
    - Parent (consolidated) rows are excluded from the distributed totals
      so a parent and its children are not counted twice.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from portfolio_engines.reconciliation.domain import (
    DEFAULT_TOLERANCE,
    ReconciliationLine,
    ReconciliationReport,
)
from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.dtos import LedgerEntryInfo
from portfolio_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation.checker")


class ReconciliationChecker:
    """
    Pure per-date reconciliation.

    Usage:
        checker = ReconciliationChecker(tolerance=Decimal("0.01"))
        report = checker.check(expected_by_date=expected, entries=entries)
    """

    def __init__(self, tolerance: Decimal = DEFAULT_TOLERANCE):
        if tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}")
        self.tolerance = tolerance

    @traced_engine(
        "payout_reconciliation", "1.0",
        fingerprint_fields=("expected_by_date", "entries"),
    )
    def check(
        self,
        expected_by_date: Mapping[date, Decimal],
        entries: Sequence[LedgerEntryInfo],
    ) -> ReconciliationReport:
        actual: dict[date, Decimal] = defaultdict(Decimal)
        breakdowns: dict[date, dict[UUID | None, Decimal]] = defaultdict(dict)

        parent_ids = {e.parent_entry_id for e in entries if e.parent_entry_id is not None}

        for entry in entries:
            if entry.entry_id in parent_ids:
                continue
            day = entry.effective_date
            actual[day] += entry.signed_amount
            per_entity = breakdowns[day]
            per_entity[entry.entity_id] = (
                per_entity.get(entry.entity_id, Decimal("0")) + entry.signed_amount
            )

        lines: list[ReconciliationLine] = []
        for day in sorted(set(expected_by_date) | set(actual)):
            source_total = expected_by_date.get(day, Decimal("0"))
            distributed = actual.get(day, Decimal("0"))
            difference = distributed - source_total
            passed = abs(difference) <= self.tolerance
            lines.append(
                ReconciliationLine(
                    date=day,
                    source_total=source_total,
                    distributed_total=distributed,
                    difference=difference,
                    passed=passed,
                    breakdown=dict(breakdowns.get(day, {})),
                )
            )

        report = ReconciliationReport(lines=tuple(lines), tolerance=self.tolerance)
        logger.info(
            "reconciliation_checked",
            extra={
                "line_count": len(lines),
                "discrepancy_count": len(report.discrepancies),
            },
        )
        return report

