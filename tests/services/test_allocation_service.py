"""
Tests for ProRataAllocationService.

Covers:
- Revenue-share allocation from ledger revenue
- Explicit percentages with top-up and normalize-down
- Equal split on zero revenue; zero children not persisted
- Installments spread over months
- Cascade delete of an allocation
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from portfolio_kernel.domain.dtos import (
    DateRange,
    EntryKind,
    LedgerEntryInfo,
    SourceTag,
)
from portfolio_kernel.exceptions import LedgerEntryNotFoundError
from portfolio_services.allocation_service import (
    ExplicitPercentageBasis,
    ProRataAllocationService,
    RevenueShareBasis,
    add_months,
)

MARCH = RevenueShareBasis.for_month(2024, 3)
YEAR = DateRange(date(2024, 1, 1), date(2025, 12, 31))


def _revenue(store, owner_id, entity_id, amount, day=date(2024, 3, 10)):
    store.insert_entries([
        LedgerEntryInfo(
            owner_id=owner_id,
            entity_id=entity_id,
            kind=EntryKind.REVENUE,
            amount=Decimal(amount),
            currency="BRL",
            effective_date=day,
            source_tag=SourceTag.EXTERNAL_PAYOUT.value,
        )
    ])


@pytest.fixture
def service(store, settings, lock_registry):
    return ProRataAllocationService(store, settings=settings, lock_registry=lock_registry)


@pytest.fixture
def march_revenue(store, owner_id, portfolio):
    _revenue(store, owner_id, portfolio["leblon"].entity_id, "1000")
    _revenue(store, owner_id, portfolio["loft"].entity_id, "1000")
    _revenue(store, owner_id, portfolio["casa"].entity_id, "500")
    # Outside the reference month
    _revenue(store, owner_id, portfolio["casa"].entity_id, "9000", day=date(2024, 2, 28))
    return portfolio


class TestRevenueShare:
    def test_tax_split_by_revenue(self, service, store, owner_id, march_revenue):
        result = service.allocate(
            owner_id,
            Decimal("300.00"),
            MARCH,
            effective_date=date(2024, 4, 10),
            source_tag=SourceTag.TAX_PRORATA,
        )

        assert len(result.parents) == 1
        parent = result.parents[0]
        assert parent.entity_id is None
        assert parent.amount == Decimal("300.00")
        assert parent.kind == EntryKind.EXPENSE
        assert parent.source_tag == SourceTag.TAX_PRORATA.value

        by_entity = {c.entity_id: c.amount for c in result.children_of(parent.entry_id)}
        assert by_entity == {
            march_revenue["leblon"].entity_id: Decimal("120.00"),
            march_revenue["loft"].entity_id: Decimal("120.00"),
            march_revenue["casa"].entity_id: Decimal("60.00"),
        }

        stored = store.list_entries(owner_id, SourceTag.TAX_PRORATA.value, YEAR)
        assert len(stored) == 4
        children = [e for e in stored if e.parent_entry_id == parent.entry_id]
        assert sum(c.amount for c in children) == Decimal("300")

    def test_zero_revenue_splits_equally(self, service, owner_id, portfolio):
        plan = service.plan(owner_id, Decimal("300"), MARCH)

        assert plan.equal_split
        assert [line.amount for line in plan.lines] == [Decimal("100.00")] * 3

    def test_zero_children_not_persisted(self, service, store, owner_id, portfolio):
        _revenue(store, owner_id, portfolio["leblon"].entity_id, "800")

        result = service.allocate(
            owner_id, Decimal("90"), MARCH, effective_date=date(2024, 4, 1)
        )

        assert [c.entity_id for c in result.children] == [portfolio["leblon"].entity_id]
        assert result.children[0].amount == Decimal("90.00")
        assert result.plan.amount_for(portfolio["loft"].entity_id) == Decimal("0")

    def test_inactive_properties_excluded(self, service, store, owner_id, march_revenue, make_property):
        make_property(store, owner_id, "Chalé Serra", is_active=False)
        plan = service.plan(owner_id, Decimal("300"), MARCH)
        assert len(plan.lines) == 3

    def test_explicit_targets(self, service, owner_id, march_revenue):
        plan = service.plan(
            owner_id,
            Decimal("100"),
            MARCH,
            entity_ids=[march_revenue["loft"].entity_id, march_revenue["casa"].entity_id],
        )
        assert plan.amount_for(march_revenue["loft"].entity_id) == Decimal("66.67")
        assert plan.amount_for(march_revenue["casa"].entity_id) == Decimal("33.33")

    def test_default_basis_uses_lookback_window(self, service, owner_id, march_revenue):
        # 30 days before April 1st covers March 2..31, not the February revenue
        result = service.allocate(owner_id, Decimal("300"), effective_date=date(2024, 4, 1))

        assert result.plan.amount_for(march_revenue["casa"].entity_id) == Decimal("60.00")
        assert result.plan.amount_for(march_revenue["loft"].entity_id) == Decimal("120.00")

    def test_trailing_window(self, service, owner_id, march_revenue):
        basis = RevenueShareBasis.trailing(date(2024, 3, 1), 30)
        plan = service.plan(owner_id, Decimal("100"), basis)
        assert plan.amount_for(march_revenue["casa"].entity_id) == Decimal("100.00")


class TestExplicitPercentages:
    def test_shortfall_goes_to_unlisted(self, service, owner_id, portfolio):
        leblon, loft, casa = (portfolio[k].entity_id for k in ("leblon", "loft", "casa"))
        basis = ExplicitPercentageBasis({leblon: Decimal("40"), loft: Decimal("40")})

        plan = service.plan(owner_id, Decimal("300"), basis, entity_ids=[leblon, loft, casa])

        assert plan.amount_for(leblon) == Decimal("120.00")
        assert plan.amount_for(loft) == Decimal("120.00")
        assert plan.amount_for(casa) == Decimal("60.00")

    def test_over_hundred_normalized_down(self, service, owner_id, portfolio):
        leblon, loft = portfolio["leblon"].entity_id, portfolio["loft"].entity_id
        basis = ExplicitPercentageBasis({leblon: Decimal("80"), loft: Decimal("70")})

        plan = service.plan(owner_id, Decimal("300"), basis)

        assert plan.amount_for(leblon) == Decimal("160.00")
        assert plan.amount_for(loft) == Decimal("140.00")

    def test_negative_percentage_rejected(self):
        with pytest.raises(ValueError):
            ExplicitPercentageBasis({uuid4(): Decimal("-1")})


class TestInstallments:
    def test_liability_spread_over_months(self, service, store, owner_id, portfolio):
        leblon, loft = portfolio["leblon"].entity_id, portfolio["loft"].entity_id
        basis = ExplicitPercentageBasis({leblon: Decimal("50"), loft: Decimal("50")})

        result = service.allocate(
            owner_id,
            Decimal("100"),
            basis,
            effective_date=date(2024, 1, 31),
            installments=3,
            description="IPTU",
        )

        assert [p.amount for p in result.parents] == [
            Decimal("33.33"), Decimal("33.33"), Decimal("33.34"),
        ]
        assert [p.effective_date for p in result.parents] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31),
        ]
        assert result.parents[2].description == "IPTU (3/3)"
        for parent in result.parents:
            children = result.children_of(parent.entry_id)
            assert sum(c.amount for c in children) == parent.amount
            assert all(c.effective_date == parent.effective_date for c in children)

    def test_invalid_installments(self, service, owner_id, portfolio):
        with pytest.raises(ValueError):
            service.allocate(
                owner_id, Decimal("10"), MARCH,
                effective_date=date(2024, 4, 1), installments=-1,
            )


class TestAllocationLifecycle:
    def test_delete_cascades(self, service, store, owner_id, march_revenue):
        result = service.allocate(
            owner_id, Decimal("300"), MARCH, effective_date=date(2024, 4, 10)
        )

        deleted = service.delete_allocation(owner_id, result.parent_ids[0])

        assert deleted == 4
        tag = SourceTag.EXPENSE_PRORATA.value
        assert store.list_entries(owner_id, tag, YEAR) == []

    def test_delete_unknown_parent(self, service, owner_id, portfolio):
        with pytest.raises(LedgerEntryNotFoundError):
            service.delete_allocation(owner_id, uuid4())

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_rejected(self, service, owner_id, portfolio, amount):
        with pytest.raises(ValueError):
            service.allocate(owner_id, amount, MARCH, effective_date=date(2024, 4, 1))

    def test_preview_writes_nothing(self, service, store, owner_id, march_revenue):
        plan = service.preview(owner_id, Decimal("300"), MARCH)

        assert plan.total == Decimal("300")
        assert store.list_entries(owner_id, SourceTag.EXPENSE_PRORATA.value, YEAR) == []

    def test_no_targets(self, service, owner_id):
        with pytest.raises(ValueError):
            service.plan(owner_id, Decimal("10"), MARCH)

    def test_logs_allocation(self, service, owner_id, march_revenue, captured_logs):
        service.allocate(owner_id, Decimal("300"), MARCH, effective_date=date(2024, 4, 10))
        records = [r for r in captured_logs() if r["message"] == "allocation_created"]
        assert records[0]["child_count"] == 3
        assert records[0]["owner_id"] == str(owner_id)


class TestAddMonths:
    @pytest.mark.parametrize(
        ("start", "months", "expected"),
        [
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2023, 1, 31), 1, date(2023, 2, 28)),
            (date(2024, 11, 15), 2, date(2025, 1, 15)),
            (date(2024, 5, 31), 0, date(2024, 5, 31)),
        ],
    )
    def test_clamps_to_month_end(self, start, months, expected):
        assert add_months(start, months) == expected
