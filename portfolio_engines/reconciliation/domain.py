"""
Reconciliation Domain Objects.

Immutable value objects for the per-date comparison of what a source report
says was paid against what was actually distributed into the ledger.
Pure domain objects with no I/O dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

DEFAULT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class ReconciliationLine:
    """
    One date of a reconciliation.

    ``difference`` is distributed minus source (signed).  ``breakdown`` maps
    each property (None for unassigned rows) to its distributed amount.
    """

    date: date
    source_total: Decimal
    distributed_total: Decimal
    difference: Decimal
    passed: bool
    breakdown: dict[UUID | None, Decimal] = field(default_factory=dict)

    @property
    def is_discrepancy(self) -> bool:
        return not self.passed


@dataclass(frozen=True)
class ReconciliationReport:
    """Per-date lines, sorted by date."""

    lines: tuple[ReconciliationLine, ...]
    tolerance: Decimal = DEFAULT_TOLERANCE

    @property
    def discrepancies(self) -> tuple[ReconciliationLine, ...]:
        return tuple(line for line in self.lines if not line.passed)

    @property
    def passed(self) -> bool:
        return not self.discrepancies

    @property
    def source_total(self) -> Decimal:
        return sum((line.source_total for line in self.lines), Decimal("0"))

    @property
    def distributed_total(self) -> Decimal:
        return sum((line.distributed_total for line in self.lines), Decimal("0"))

    def line_for(self, day: date) -> ReconciliationLine | None:
        for line in self.lines:
            if line.date == day:
                return line
        return None

    @classmethod
    def empty(cls, tolerance: Decimal = DEFAULT_TOLERANCE) -> ReconciliationReport:
        return cls(lines=(), tolerance=tolerance)
