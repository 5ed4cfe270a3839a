"""
Module: portfolio_engines.attribution
Responsibility:
    Turn the records of a payout report into per-property ledger amounts.

    Historical reports: each payout is attributed to the reservation and
    adjustment rows that follow it with the same transaction date, up to the
    next payout.  The payout's paid amount is split across the resolved
    properties in proportion to their (netted) gross amounts.

    Pending reports: every reservation whose check-in lies after the
    reference date becomes one direct amount for its property.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Labels arrive already
    resolved (label -> property id or None); "today" arrives as a parameter.

Invariants enforced:
    - For every payout with at least one attributable row, the amounts
      emitted for it sum to its paid amount exactly (via the distributor).
    - Rows with a zero gross amount never contribute weight.
    - Rows whose label did not resolve are excluded and reported as orphans.
    - Per-property weights are netted; a negative net weight is clamped to
      zero and reported.  A payout left with no positive weight is
      unattributed, never split equally.
    - Zero amounts are never emitted.
    - The expected source total per date includes every payout on that date
      (or every future reservation, for pending reports), attributable or
      not, so unattributed money surfaces in reconciliation.

Failure modes:
    - None raised; problems are returned as diagnostics.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from portfolio_engines.distribution import (
    DistributionWeight,
    ProportionalDistributor,
    WeightBasis,
)
from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.dtos import DateRange, ExternalRecord, RecordType
from portfolio_kernel.logging_config import get_logger

logger = get_logger("engines.attribution")


@dataclass(frozen=True)
class AttributedAmount:
    """Money for one property from one source record (payout or reservation)."""

    entity_id: UUID
    amount: Decimal
    effective_date: date
    currency: str
    source_row: int
    weight: Decimal
    reference: str | None = None


@dataclass(frozen=True)
class PayoutAttribution:
    """How one payout was split."""

    payout: ExternalRecord
    amounts: tuple[AttributedAmount, ...]
    contributing_rows: tuple[ExternalRecord, ...]
    orphaned_rows: tuple[ExternalRecord, ...]

    @property
    def attributed(self) -> bool:
        return bool(self.amounts)


@dataclass(frozen=True)
class AttributionResult:
    """Output of an attribution run."""

    amounts: tuple[AttributedAmount, ...]
    expected_by_date: dict[date, Decimal]
    orphaned_records: tuple[ExternalRecord, ...] = ()
    payouts: tuple[PayoutAttribution, ...] = ()
    diagnostics: tuple[str, ...] = ()
    covered_dates: tuple[date, ...] = field(default=())

    @property
    def date_range(self) -> DateRange | None:
        """Range that the import replaces: min..max of the covered dates."""
        return DateRange.covering(self.covered_dates)

    @property
    def orphaned_labels(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for record in self.orphaned_records:
            seen.setdefault(record.external_entity_label, None)
        return tuple(seen)


class PayoutAttributionEngine:
    """
    Pure attribution of report records to properties.

    Usage:
        engine = PayoutAttributionEngine()
        result = engine.attribute_payouts(records=records, resolved=label_map)
    """

    def __init__(self, distributor: ProportionalDistributor | None = None):
        self.distributor = distributor or ProportionalDistributor()

    @traced_engine("payout_attribution", "1.0", fingerprint_fields=("records",))
    def attribute_payouts(
        self,
        records: Sequence[ExternalRecord],
        resolved: Mapping[str, UUID | None],
    ) -> AttributionResult:
        """Attribute each payout to the same-date rows that follow it."""
        amounts: list[AttributedAmount] = []
        payouts: list[PayoutAttribution] = []
        orphans: list[ExternalRecord] = []
        diagnostics: list[str] = []
        expected: dict[date, Decimal] = defaultdict(Decimal)

        for index, payout in enumerate(records):
            if payout.record_type != RecordType.PAYOUT:
                continue

            paid = payout.paid_amount if payout.paid_amount is not None else payout.gross_amount
            expected[payout.transaction_date] += paid

            group = self._collect_group(records, index)
            weights: dict[UUID, Decimal] = {}
            contributing: list[ExternalRecord] = []
            payout_orphans: list[ExternalRecord] = []

            for row in group:
                if row.gross_amount == 0:
                    continue
                entity_id = resolved.get(row.external_entity_label)
                if entity_id is None:
                    payout_orphans.append(row)
                    continue
                weights[entity_id] = weights.get(entity_id, Decimal("0")) + row.gross_amount
                contributing.append(row)

            orphans.extend(payout_orphans)

            for entity_id, net in list(weights.items()):
                if net < 0:
                    weights[entity_id] = Decimal("0")
                    diagnostics.append(
                        f"Row {payout.source_row}: net weight {net} for property "
                        f"{entity_id} clamped to zero"
                    )

            payout_amounts: tuple[AttributedAmount, ...] = ()
            if not any(w > 0 for w in weights.values()):
                diagnostics.append(
                    f"Row {payout.source_row}: payout of {paid} on "
                    f"{payout.transaction_date.isoformat()} has no attributable rows"
                )
                logger.warning(
                    "payout_unattributed",
                    extra={
                        "source_row": payout.source_row,
                        "paid_amount": str(paid),
                        "orphaned_rows": len(payout_orphans),
                    },
                )
            else:
                result = self.distributor.distribute(
                    total=paid,
                    weights=[DistributionWeight(k, w) for k, w in weights.items()],
                    basis=WeightBasis.VALUE,
                )
                payout_amounts = tuple(
                    AttributedAmount(
                        entity_id=share.share_key,
                        amount=share.amount,
                        effective_date=payout.transaction_date,
                        currency=payout.currency,
                        source_row=payout.source_row,
                        weight=share.effective_weight,
                        reference=payout.confirmation_code,
                    )
                    for share in result.shares
                    if share.amount != 0
                )
                amounts.extend(payout_amounts)

            payouts.append(
                PayoutAttribution(
                    payout=payout,
                    amounts=payout_amounts,
                    contributing_rows=tuple(contributing),
                    orphaned_rows=tuple(payout_orphans),
                )
            )

        logger.info(
            "payouts_attributed",
            extra={
                "payout_count": len(payouts),
                "amount_count": len(amounts),
                "orphaned_rows": len(orphans),
            },
        )

        return AttributionResult(
            amounts=tuple(amounts),
            expected_by_date=dict(expected),
            orphaned_records=tuple(orphans),
            payouts=tuple(payouts),
            diagnostics=tuple(diagnostics),
            covered_dates=tuple(p.payout.transaction_date for p in payouts),
        )

    @staticmethod
    def _collect_group(
        records: Sequence[ExternalRecord], payout_index: int
    ) -> list[ExternalRecord]:
        payout = records[payout_index]
        group: list[ExternalRecord] = []
        for row in records[payout_index + 1:]:
            if row.record_type == RecordType.PAYOUT:
                break
            if row.transaction_date == payout.transaction_date:
                group.append(row)
        return group

    @traced_engine("pending_attribution", "1.0", fingerprint_fields=("records", "today"))
    def attribute_pending(
        self,
        records: Sequence[ExternalRecord],
        resolved: Mapping[str, UUID | None],
        today: date,
    ) -> AttributionResult:
        """One amount per future reservation, effective on its check-in date."""
        amounts: list[AttributedAmount] = []
        orphans: list[ExternalRecord] = []
        expected: dict[date, Decimal] = defaultdict(Decimal)
        covered: list[date] = []

        for row in records:
            if row.record_type != RecordType.RESERVATION:
                continue
            effective = row.check_in_date or row.transaction_date
            if effective <= today or row.gross_amount == 0:
                continue

            expected[effective] += row.gross_amount
            covered.append(effective)

            entity_id = resolved.get(row.external_entity_label)
            if entity_id is None:
                orphans.append(row)
                continue

            amounts.append(
                AttributedAmount(
                    entity_id=entity_id,
                    amount=row.gross_amount,
                    effective_date=effective,
                    currency=row.currency,
                    source_row=row.source_row,
                    weight=row.gross_amount,
                    reference=row.confirmation_code,
                )
            )

        logger.info(
            "pending_reservations_attributed",
            extra={"amount_count": len(amounts), "orphaned_rows": len(orphans)},
        )

        return AttributionResult(
            amounts=tuple(amounts),
            expected_by_date=dict(expected),
            orphaned_records=tuple(orphans),
            covered_dates=tuple(covered),
        )
