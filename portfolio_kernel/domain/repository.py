"""
LedgerStore -- persistence contract used by the services.

Responsibility:
    Declares the repository interface the import and allocation services
    depend on.  Services receive an implementation by injection:
    ``SqlLedgerStore`` (SQLAlchemy) in production, ``InMemoryLedgerStore``
    in tests and dry runs.

Architecture position:
    Kernel > Domain -- interface only, zero I/O.

Contract:
    - Every read and write is scoped by owner.
    - ``delete_entries`` removes the given entries and, transitively, all
      their children; the returned count includes the children.
    - ``atomic(owner_id)`` is the unit of work: everything done inside it is
      committed together on normal exit and rolled back on any exception.
      Implementations also serialize concurrent units of work for the same
      owner where the backend supports it.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from portfolio_kernel.domain.dtos import (
    DateRange,
    EntityInfo,
    EntityMappingInfo,
    EntryKind,
    LedgerEntryInfo,
)


class LedgerStore(Protocol):
    """Repository for entities, learned mappings and ledger entries."""

    def list_entities(self, owner_id: UUID) -> list[EntityInfo]:
        ...

    def get_entity(self, owner_id: UUID, entity_id: UUID) -> EntityInfo | None:
        ...

    def get_mapping(
        self, owner_id: UUID, normalized_label: str
    ) -> EntityMappingInfo | None:
        ...

    def save_mapping(self, mapping: EntityMappingInfo) -> EntityMappingInfo:
        """Insert or replace the mapping for (owner, normalized label)."""
        ...

    def list_entries(
        self,
        owner_id: UUID,
        source_tag: str | None,
        date_range: DateRange,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntryInfo]:
        """Entries effective inside ``date_range``; ``source_tag=None`` means any tag."""
        ...

    def get_entry(self, owner_id: UUID, entry_id: UUID) -> LedgerEntryInfo | None:
        ...

    def children_of(self, owner_id: UUID, parent_id: UUID) -> list[LedgerEntryInfo]:
        ...

    def revenue_by_entity(
        self, owner_id: UUID, date_range: DateRange
    ) -> dict[UUID, Decimal]:
        """Realized revenue per property (leaves only) effective inside ``date_range``.

        ``external-pending`` forecasts are not revenue yet and are left out.
        """
        ...

    def delete_entries(self, owner_id: UUID, entry_ids: Sequence[UUID]) -> int:
        ...

    def insert_entries(
        self, entries: Sequence[LedgerEntryInfo]
    ) -> list[LedgerEntryInfo]:
        ...

    def atomic(self, owner_id: UUID) -> AbstractContextManager[None]:
        ...


def iter_descendants(
    children: dict[UUID, list[UUID]], roots: Sequence[UUID]
) -> Iterator[UUID]:
    """Depth-first walk of a parent -> children index, children before parents."""
    seen: set[UUID] = set()

    def _walk(node: UUID) -> Iterator[UUID]:
        if node in seen:
            return
        seen.add(node)
        for child in children.get(node, ()):
            yield from _walk(child)
        yield node

    for root in roots:
        yield from _walk(root)
