"""
portfolio_services.payout_import_service -- Payout report import orchestration.

Responsibility:
    Runs one report import for one owner as a sequential batch:
        parse -> resolve labels -> attribute -> replace range -> reconcile.
    Historical reports become ``external-payout`` revenue per property;
    pending reports become ``external-pending`` revenue for reservations
    checking in after today.  ``preview`` performs the same parse, resolve
    and attribution without writing anything.

Architecture position:
    Services -- composes ingestion (parse_report), the pure engines
    (PayoutAttributionEngine, ReconciliationChecker) and a LedgerStore.

Invariants enforced:
    - Fatal report errors are raised before anything is written.
    - Runs for the same owner are serialized (OwnerLockRegistry, plus the
      store's own serialization inside ``atomic``).
    - Stale-entry deletion, insertion and learned mappings are committed
      together or not at all.
    - Re-importing the same report leaves the ledger unchanged.
    - Reconciliation runs after the write commits and never rolls it back.

Failure modes:
    - ReportRejectedError family: empty, undecodable or unrecognized report.
    - ImportInProgressError: another run for the owner holds the lock past
      the configured timeout.
    - LedgerPersistenceError: the store failed; prior state is intact.

Usage:
    service = PayoutImportService(store, clock=SystemClock())
    outcome = service.import_report(Path("payouts.csv"), owner_id)
    for line in outcome.discrepancies:
        ...
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from portfolio_config import EngineSettings, get_active_config
from portfolio_engines.attribution import (
    AttributedAmount,
    AttributionResult,
    PayoutAttributionEngine,
)
from portfolio_engines.distribution import ProportionalDistributor
from portfolio_engines.matching import (
    EntityNameMatcher,
    MatchPolicy,
    get_similarity_strategy,
)
from portfolio_engines.reconciliation import (
    ReconciliationChecker,
    ReconciliationLine,
    ReconciliationReport,
)
from portfolio_ingestion.adapters.base import ReportSource
from portfolio_ingestion.domain.types import LayoutKind, ParsedReport
from portfolio_ingestion.normalizer import parse_report
from portfolio_kernel.db.types import round_money
from portfolio_kernel.domain.clock import Clock, SystemClock
from portfolio_kernel.domain.dtos import (
    DateRange,
    EntryKind,
    ExternalRecord,
    LedgerEntryInfo,
    RecordType,
    SourceTag,
)
from portfolio_kernel.domain.repository import LedgerStore
from portfolio_kernel.logging_config import LogContext, get_logger
from portfolio_kernel.services.owner_locks import OwnerLockRegistry, default_lock_registry
from portfolio_services.entity_resolver import EntityResolver, Resolution
from portfolio_services.range_replacement import RangeReplacementService
from portfolio_services.reconciliation_service import ReconciliationService

logger = get_logger("services.payout_import")


@dataclass(frozen=True)
class ImportOutcome:
    """What an import did."""

    import_id: UUID
    layout: LayoutKind
    source_tag: str
    imported_count: int
    skipped_count: int
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    unmapped_labels: tuple[str, ...]
    reconciliation: ReconciliationReport
    deleted_count: int
    entry_count: int
    date_range: DateRange | None
    pending_confirmations: tuple[Resolution, ...] = ()

    @property
    def discrepancies(self) -> tuple[ReconciliationLine, ...]:
        return self.reconciliation.discrepancies


@dataclass(frozen=True)
class ImportPreview:
    """Dry run of an import: nothing is written."""

    layout: LayoutKind
    payout_count: int
    reservation_count: int
    adjustment_count: int
    skipped_count: int
    errors: tuple[str, ...]
    date_range: DateRange | None
    total_amount: Decimal
    entry_count: int
    resolved: dict[str, UUID] = field(default_factory=dict)
    unmapped_labels: tuple[str, ...] = ()
    pending_confirmations: tuple[Resolution, ...] = ()


class PayoutImportService:
    """
    Imports payout reports into the ledger.

    Contract:
        ``import_report`` is idempotent per (owner, source tag, date range):
        running it twice with the same content yields the same ledger.

    Non-goals:
        - Does NOT create properties; unknown labels are reported.
        - Does NOT support cancellation of a running import.
    """

    def __init__(
        self,
        store: LedgerStore,
        resolver: EntityResolver | None = None,
        *,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        lock_registry: OwnerLockRegistry | None = None,
        attribution_engine: PayoutAttributionEngine | None = None,
    ):
        self.store = store
        self._resolver = resolver
        self.clock = clock or SystemClock()
        self.settings = settings or get_active_config()
        self.lock_registry = lock_registry or default_lock_registry()
        self._attribution_engine = attribution_engine

    # ------------------------------------------------------------------
    # Per-owner collaborators
    # ------------------------------------------------------------------

    def _resolver_for(self, settings: EngineSettings) -> EntityResolver:
        if self._resolver is not None:
            return self._resolver
        matcher = EntityNameMatcher(
            strategy=get_similarity_strategy(settings.resolver.similarity_strategy),
            policy=MatchPolicy(
                accept_threshold=settings.resolver.accept_threshold,
                auto_learn_threshold=settings.resolver.auto_learn_threshold,
            ),
        )
        return EntityResolver(self.store, matcher)

    def _engine_for(self, settings: EngineSettings) -> PayoutAttributionEngine:
        if self._attribution_engine is not None:
            return self._attribution_engine
        return PayoutAttributionEngine(
            ProportionalDistributor(decimal_places=settings.imports.decimal_places)
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def import_report(self, content: ReportSource, owner_id: UUID) -> ImportOutcome:
        """Parse, attribute and persist a report for ``owner_id``.

        Raises:
            ReportRejectedError: the report cannot be used at all.
            ImportInProgressError: the owner's lock timed out.
            LedgerPersistenceError: the write failed and was rolled back.
        """
        settings = self.settings.for_owner(owner_id)
        import_id = uuid4()

        with LogContext.bind(owner_id=owner_id, import_id=import_id):
            parsed = parse_report(content, default_currency=settings.imports.default_currency)
            source_tag = _source_tag_for(parsed.layout)

            logger.info(
                "payout_import_started",
                extra={
                    "layout": parsed.layout.value,
                    "record_count": len(parsed.records),
                    "issue_count": len(parsed.issues),
                },
            )

            with self.lock_registry.hold(
                owner_id, timeout=settings.imports.lock_timeout_seconds
            ):
                with self.store.atomic(owner_id):
                    resolutions = self._resolver_for(settings).resolve_all(
                        _labels(parsed.records), owner_id
                    )
                    attribution = self._attribute(settings, parsed, resolutions)
                    entries = [
                        _entry_for(owner_id, source_tag, amount, settings.imports.decimal_places)
                        for amount in attribution.amounts
                    ]
                    date_range = self._replacement_range(
                        owner_id, parsed.layout, source_tag, attribution.date_range
                    )
                    deleted = 0
                    if date_range is not None:
                        replacement = RangeReplacementService(self.store).replace(
                            owner_id, source_tag, date_range, entries
                        )
                        deleted = replacement.deleted_count

                if date_range is None:
                    report = ReconciliationReport.empty(settings.reconciliation.tolerance)
                else:
                    report = ReconciliationService(
                        self.store,
                        ReconciliationChecker(tolerance=settings.reconciliation.tolerance),
                    ).validate(owner_id, source_tag, date_range, attribution.expected_by_date)

            unmapped = attribution.orphaned_labels
            warnings = tuple(
                [f"Unmapped label: {label!r}" for label in unmapped]
                + list(attribution.diagnostics)
            )
            pending = tuple(r for r in resolutions.values() if r.needs_confirmation)

            outcome = ImportOutcome(
                import_id=import_id,
                layout=parsed.layout,
                source_tag=source_tag,
                imported_count=len(parsed.records),
                skipped_count=parsed.skipped_count,
                errors=tuple(parsed.errors),
                warnings=warnings,
                unmapped_labels=unmapped,
                reconciliation=report,
                deleted_count=deleted,
                entry_count=len(entries),
                date_range=date_range,
                pending_confirmations=pending,
            )

            logger.info(
                "payout_import_completed",
                extra={
                    "imported_count": outcome.imported_count,
                    "skipped_count": outcome.skipped_count,
                    "deleted_count": deleted,
                    "entry_count": outcome.entry_count,
                    "unmapped_count": len(unmapped),
                    "discrepancy_count": len(outcome.discrepancies),
                },
            )
            return outcome

    def preview(self, content: ReportSource, owner_id: UUID) -> ImportPreview:
        """Parse, resolve and attribute without writing anything."""
        settings = self.settings.for_owner(owner_id)
        parsed = parse_report(content, default_currency=settings.imports.default_currency)
        resolutions = self._resolver_for(settings).resolve_all(
            _labels(parsed.records), owner_id, learn=False
        )
        attribution = self._attribute(settings, parsed, resolutions)

        return ImportPreview(
            layout=parsed.layout,
            payout_count=parsed.count(RecordType.PAYOUT),
            reservation_count=parsed.count(RecordType.RESERVATION),
            adjustment_count=parsed.count(RecordType.ADJUSTMENT),
            skipped_count=parsed.skipped_count,
            errors=tuple(parsed.errors),
            date_range=attribution.date_range,
            total_amount=sum(attribution.expected_by_date.values(), Decimal("0")),
            entry_count=len(attribution.amounts),
            resolved={
                label: r.entity_id for label, r in resolutions.items() if r.entity_id
            },
            unmapped_labels=attribution.orphaned_labels,
            pending_confirmations=tuple(
                r for r in resolutions.values() if r.needs_confirmation
            ),
        )

    def _attribute(
        self,
        settings: EngineSettings,
        parsed: ParsedReport,
        resolutions: dict[str, Resolution],
    ) -> AttributionResult:
        engine = self._engine_for(settings)
        resolved = {label: r.entity_id for label, r in resolutions.items()}
        if parsed.layout == LayoutKind.PENDING:
            return engine.attribute_pending(
                records=parsed.records, resolved=resolved, today=self.clock.today()
            )
        return engine.attribute_payouts(records=parsed.records, resolved=resolved)

    def _replacement_range(
        self,
        owner_id: UUID,
        layout: LayoutKind,
        source_tag: str,
        attributed: DateRange | None,
    ) -> DateRange | None:
        """Range whose ``source_tag`` entries the import replaces.

        Historical reports replace the dates they cover.  A pending report is
        the platform's full list of upcoming stays, so it replaces every
        forecast from tomorrow up to the later of its own last check-in and
        the last forecast already stored; cancelled stays drop out.
        """
        if layout != LayoutKind.PENDING:
            return attributed
        start = self.clock.today() + timedelta(days=1)
        stored = self.store.list_entries(owner_id, source_tag, DateRange(start, date.max))
        ends = [e.effective_date for e in stored]
        if attributed is not None:
            ends.append(attributed.end)
        if not ends:
            return None
        return DateRange(start, max(ends))


def _source_tag_for(layout: LayoutKind) -> str:
    if layout == LayoutKind.PENDING:
        return SourceTag.EXTERNAL_PENDING.value
    return SourceTag.EXTERNAL_PAYOUT.value


def _labels(records: Sequence[ExternalRecord]) -> list[str]:
    return [r.external_entity_label for r in records if not r.is_payout]


def _entry_for(
    owner_id: UUID, source_tag: str, amount: AttributedAmount, decimal_places: int
) -> LedgerEntryInfo:
    # Negative shares come from adjustment-heavy payouts; stored as expenses
    value = round_money(amount.amount, decimal_places)
    return LedgerEntryInfo(
        owner_id=owner_id,
        entity_id=amount.entity_id,
        kind=EntryKind.REVENUE if value >= 0 else EntryKind.EXPENSE,
        amount=abs(value),
        currency=amount.currency,
        effective_date=amount.effective_date,
        source_tag=source_tag,
        description=f"{source_tag} row {amount.source_row}",
        external_reference=amount.reference,
    )
