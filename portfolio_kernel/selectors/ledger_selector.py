"""
Module: portfolio_kernel.selectors.ledger_selector
Responsibility: Read paths over properties, learned mappings and ledger
    entries, returned as DTOs.
Architecture position: Kernel > Selectors.  Read-only.
"""

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from portfolio_kernel.domain.dtos import (
    DateRange,
    EntityInfo,
    EntityMappingInfo,
    EntryKind,
    LedgerEntryInfo,
    SourceTag,
)
from portfolio_kernel.models.entity_mapping import EntityMappingModel
from portfolio_kernel.models.ledger_entry import LedgerEntryModel
from portfolio_kernel.models.property import PropertyModel
from portfolio_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Queries scoped by owner."""

    def entities(self, owner_id: UUID) -> list[EntityInfo]:
        stmt = (
            select(PropertyModel)
            .where(PropertyModel.owner_id == owner_id)
            .order_by(PropertyModel.name)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def entity(self, owner_id: UUID, entity_id: UUID) -> EntityInfo | None:
        row = self.session.get(PropertyModel, entity_id)
        if row is None or row.owner_id != owner_id:
            return None
        return row.to_dto()

    def mapping(self, owner_id: UUID, normalized_label: str) -> EntityMappingInfo | None:
        stmt = select(EntityMappingModel).where(
            EntityMappingModel.owner_id == owner_id,
            EntityMappingModel.normalized_label == normalized_label,
        )
        row = self.session.scalars(stmt).one_or_none()
        return row.to_dto() if row is not None else None

    def entries(
        self,
        owner_id: UUID,
        source_tag: str | None,
        date_range: DateRange,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntryInfo]:
        stmt = select(LedgerEntryModel).where(
            LedgerEntryModel.owner_id == owner_id,
            LedgerEntryModel.effective_date >= date_range.start,
            LedgerEntryModel.effective_date <= date_range.end,
        )
        if source_tag is not None:
            stmt = stmt.where(
                LedgerEntryModel.source_tag == getattr(source_tag, "value", source_tag)
            )
        if kind is not None:
            stmt = stmt.where(LedgerEntryModel.kind == EntryKind(kind).value)
        stmt = stmt.order_by(LedgerEntryModel.effective_date, LedgerEntryModel.created_at)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def entry(self, owner_id: UUID, entry_id: UUID) -> LedgerEntryInfo | None:
        row = self.session.get(LedgerEntryModel, entry_id)
        if row is None or row.owner_id != owner_id:
            return None
        return row.to_dto()

    def child_entries(self, owner_id: UUID, parent_id: UUID) -> list[LedgerEntryInfo]:
        stmt = (
            select(LedgerEntryModel)
            .where(
                LedgerEntryModel.owner_id == owner_id,
                LedgerEntryModel.parent_entry_id == parent_id,
            )
            .order_by(LedgerEntryModel.effective_date, LedgerEntryModel.created_at)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def children(self, owner_id: UUID, parent_ids: list[UUID]) -> dict[UUID, list[UUID]]:
        """Direct children of each parent id."""
        if not parent_ids:
            return {}
        stmt = select(LedgerEntryModel.parent_entry_id, LedgerEntryModel.id).where(
            LedgerEntryModel.owner_id == owner_id,
            LedgerEntryModel.parent_entry_id.in_(parent_ids),
        )
        index: dict[UUID, list[UUID]] = defaultdict(list)
        for parent_id, child_id in self.session.execute(stmt):
            index[parent_id].append(child_id)
        return dict(index)

    def revenue_by_entity(self, owner_id: UUID, date_range: DateRange) -> dict[UUID, Decimal]:
        """Realized revenue leaves per property inside the range."""
        stmt = (
            select(LedgerEntryModel.entity_id, func.sum(LedgerEntryModel.amount))
            .where(
                LedgerEntryModel.owner_id == owner_id,
                LedgerEntryModel.kind == EntryKind.REVENUE.value,
                LedgerEntryModel.entity_id.is_not(None),
                LedgerEntryModel.source_tag != SourceTag.EXTERNAL_PENDING.value,
                LedgerEntryModel.effective_date >= date_range.start,
                LedgerEntryModel.effective_date <= date_range.end,
            )
            .group_by(LedgerEntryModel.entity_id)
        )
        return {
            entity_id: Decimal(str(total or 0))
            for entity_id, total in self.session.execute(stmt)
        }
