"""Tests for kernel value objects: DateRange and LedgerEntryInfo."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from portfolio_kernel.domain.dtos import (
    DateRange,
    EntityInfo,
    EntryKind,
    LedgerEntryInfo,
    SourceTag,
)
from portfolio_kernel.exceptions import InvalidDateRangeError


class TestDateRange:
    def test_inverted_range_rejected(self):
        with pytest.raises(InvalidDateRangeError) as exc_info:
            DateRange(date(2024, 3, 2), date(2024, 3, 1))
        assert exc_info.value.code == "INVALID_DATE_RANGE"

    def test_single_day(self):
        r = DateRange(date(2024, 3, 1), date(2024, 3, 1))
        assert r.days == 1
        assert r.contains(date(2024, 3, 1))

    def test_covering(self):
        r = DateRange.covering([date(2024, 3, 5), date(2024, 3, 1), date(2024, 3, 3)])
        assert r == DateRange(date(2024, 3, 1), date(2024, 3, 5))

    def test_covering_nothing(self):
        assert DateRange.covering([]) is None

    def test_month(self):
        assert DateRange.month(2024, 2) == DateRange(date(2024, 2, 1), date(2024, 2, 29))
        assert DateRange.month(2023, 12) == DateRange(date(2023, 12, 1), date(2023, 12, 31))

    def test_trailing_days_excludes_anchor(self):
        r = DateRange.trailing_days(date(2024, 3, 31), 30)
        assert r.start == date(2024, 3, 1)
        assert r.end == date(2024, 3, 30)
        assert not r.contains(date(2024, 3, 31))
        assert r.days == 30

    def test_trailing_days_must_be_positive(self):
        with pytest.raises(ValueError):
            DateRange.trailing_days(date(2024, 3, 31), 0)


class TestLedgerEntryInfo:
    def _entry(self, kind, amount):
        return LedgerEntryInfo(
            owner_id=uuid4(),
            entity_id=uuid4(),
            kind=kind,
            amount=Decimal(amount),
            currency="BRL",
            effective_date=date(2024, 3, 1),
            source_tag=SourceTag.EXTERNAL_PAYOUT.value,
        )

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            self._entry(EntryKind.REVENUE, "-1")

    def test_signed_amount(self):
        assert self._entry(EntryKind.REVENUE, "10").signed_amount == Decimal("10")
        assert self._entry(EntryKind.EXPENSE, "10").signed_amount == Decimal("-10")


class TestEntityInfo:
    def test_labels_skip_blanks(self):
        entity = EntityInfo(
            entity_id=uuid4(),
            owner_id=uuid4(),
            name="Loft Centro",
            nickname="  ",
            external_name="Loft charmoso no Centro",
            aliases=("Loft",),
        )
        assert entity.labels() == ("Loft Centro", "Loft charmoso no Centro", "Loft")
