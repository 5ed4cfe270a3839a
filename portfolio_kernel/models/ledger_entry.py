"""
Module: portfolio_kernel.models.ledger_entry
Responsibility: ORM persistence for revenue and expense entries, including
    consolidated parents (entity_id NULL) and their per-property children.
Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and domain/dtos.py only.

Invariants enforced:
    - amount >= 0 (ck_ledger_entry_amount_non_negative); direction is kind.
    - parent_entry_id references another entry; deleting a parent deletes
      its children (ON DELETE CASCADE, also enforced by the stores).
    - Children of a parent sum to the parent's amount (enforced by the
      allocation service, checked by tests).

Failure modes:
    - IntegrityError on a negative amount or a dangling parent reference.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import TrackedBase, UUIDString
from portfolio_kernel.domain.dtos import EntryKind, LedgerEntryInfo


class LedgerEntryModel(TrackedBase):
    """One revenue or expense entry for an owner."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_ledger_entry_amount_non_negative"),
        Index("idx_ledger_owner_tag_date", "owner_id", "source_tag", "effective_date"),
        Index("idx_ledger_parent", "parent_entry_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # NULL for consolidated parent rows
    entity_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=True,
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    effective_date: Mapped[date] = mapped_column(nullable=False)

    source_tag: Mapped[str] = mapped_column(String(50), nullable=False)

    parent_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id", ondelete="CASCADE"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    external_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    @classmethod
    def from_dto(cls, entry: LedgerEntryInfo, actor_id: UUID) -> "LedgerEntryModel":
        return cls(
            id=entry.entry_id,
            owner_id=entry.owner_id,
            entity_id=entry.entity_id,
            kind=EntryKind(entry.kind).value,
            amount=entry.amount,
            currency=entry.currency,
            effective_date=entry.effective_date,
            source_tag=getattr(entry.source_tag, "value", entry.source_tag),
            parent_entry_id=entry.parent_entry_id,
            description=entry.description,
            external_reference=entry.external_reference,
            created_by_id=actor_id,
        )

    def to_dto(self) -> LedgerEntryInfo:
        return LedgerEntryInfo(
            owner_id=self.owner_id,
            entity_id=self.entity_id,
            kind=EntryKind(self.kind),
            amount=self.amount,
            currency=self.currency,
            effective_date=self.effective_date,
            source_tag=self.source_tag,
            entry_id=self.id,
            parent_entry_id=self.parent_entry_id,
            description=self.description,
            external_reference=self.external_reference,
        )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.kind} {self.amount} {self.currency} "
            f"{self.effective_date} tag={self.source_tag}>"
        )
