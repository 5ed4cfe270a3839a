"""
Data Transfer Objects -- immutable value carriers between layers.

Responsibility:
    Frozen dataclasses and enums that flow from ingestion through the
    engines into persistence and back out of selectors.  ORM models never
    leave the kernel; they convert to and from these DTOs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    May import only from portfolio_kernel.exceptions.

Invariants enforced:
    - DateRange start <= end (InvalidDateRangeError otherwise).
    - LedgerEntryInfo.amount is never negative; the direction lives in
      ``kind``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from portfolio_kernel.exceptions import InvalidDateRangeError


class RecordType(str, Enum):
    """Kind of row in an external payout report."""

    PAYOUT = "payout"
    RESERVATION = "reservation"
    ADJUSTMENT = "adjustment"


class EntryKind(str, Enum):
    """Direction of a ledger entry."""

    REVENUE = "revenue"
    EXPENSE = "expense"


class SourceTag(str, Enum):
    """Origin of a ledger entry; range replacement is scoped by tag."""

    EXTERNAL_PAYOUT = "external-payout"
    EXTERNAL_PENDING = "external-pending"
    TAX_PRORATA = "tax-prorata"
    EXPENSE_PRORATA = "expense-prorata"


class MappingSource(str, Enum):
    """How a label-to-entity mapping was learned."""

    AUTO = "auto"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidDateRangeError(self.start.isoformat(), self.end.isoformat())

    @classmethod
    def covering(cls, dates: Iterable[date]) -> DateRange | None:
        """Smallest range containing every date, or None for no dates."""
        values = list(dates)
        if not values:
            return None
        return cls(min(values), max(values))

    @classmethod
    def trailing_days(cls, anchor: date, days: int) -> DateRange:
        """The ``days`` days strictly before ``anchor``."""
        if days < 1:
            raise ValueError(f"days must be positive, got {days}")
        return cls(anchor - timedelta(days=days), anchor - timedelta(days=1))

    @classmethod
    def month(cls, year: int, month: int) -> DateRange:
        start = date(year, month, 1)
        if month == 12:
            end = date(year + 1, 1, 1) - timedelta(days=1)
        else:
            end = date(year, month + 1, 1) - timedelta(days=1)
        return cls(start, end)

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class ExternalRecord:
    """One recognized row of an external payout report (never persisted)."""

    record_type: RecordType
    transaction_date: date
    external_entity_label: str
    gross_amount: Decimal
    currency: str
    source_row: int
    paid_amount: Decimal | None = None
    confirmation_code: str | None = None
    check_in_date: date | None = None
    check_out_date: date | None = None
    nights: int | None = None
    guest_name: str | None = None

    @property
    def is_payout(self) -> bool:
        return self.record_type == RecordType.PAYOUT


@dataclass(frozen=True)
class EntityInfo:
    """Internal property (cost/revenue centre) as seen by the engines."""

    entity_id: UUID
    owner_id: UUID
    name: str
    nickname: str | None = None
    external_name: str | None = None
    aliases: tuple[str, ...] = ()
    is_active: bool = True

    def labels(self) -> tuple[str, ...]:
        """All names this entity is known by, without blanks."""
        names = (self.name, self.nickname, self.external_name, *self.aliases)
        return tuple(n for n in names if n and n.strip())


@dataclass(frozen=True)
class EntityMappingInfo:
    """Learned association of a normalized label with an entity."""

    owner_id: UUID
    normalized_label: str
    entity_id: UUID
    source: MappingSource
    raw_label: str | None = None
    similarity: Decimal | None = None
    mapping_id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class LedgerEntryInfo:
    """A single ledger entry; parents carry ``entity_id=None``."""

    owner_id: UUID
    entity_id: UUID | None
    kind: EntryKind
    amount: Decimal
    currency: str
    effective_date: date
    source_tag: str
    entry_id: UUID = field(default_factory=uuid4)
    parent_entry_id: UUID | None = None
    description: str | None = None
    external_reference: str | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(
                f"Ledger entry amount must be non-negative, got {self.amount}"
            )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with revenue positive and expense negative."""
        return self.amount if self.kind == EntryKind.REVENUE else -self.amount

    @property
    def is_parent(self) -> bool:
        return self.entity_id is None
