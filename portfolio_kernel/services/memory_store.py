"""
InMemoryLedgerStore -- dictionary-backed LedgerStore.

Used by tests and dry-run previews.  Behaves like SqlLedgerStore: owner
scoping, cascade deletes, upserted mappings, and an ``atomic`` unit of work
that restores the prior state when the block raises.
"""

import threading
from collections import defaultdict
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from portfolio_kernel.domain.dtos import (
    DateRange,
    EntityInfo,
    EntityMappingInfo,
    EntryKind,
    LedgerEntryInfo,
    SourceTag,
)
from portfolio_kernel.domain.repository import iter_descendants


class InMemoryLedgerStore:
    """LedgerStore held in process memory."""

    def __init__(self) -> None:
        self._entities: dict[UUID, EntityInfo] = {}
        self._mappings: dict[tuple[UUID, str], EntityMappingInfo] = {}
        self._entries: dict[UUID, LedgerEntryInfo] = {}
        self._lock = threading.RLock()

    def add_entity(self, entity: EntityInfo) -> EntityInfo:
        with self._lock:
            self._entities[entity.entity_id] = entity
        return entity

    def list_entities(self, owner_id: UUID) -> list[EntityInfo]:
        with self._lock:
            found = [e for e in self._entities.values() if e.owner_id == owner_id]
        return sorted(found, key=lambda e: e.name)

    def get_entity(self, owner_id: UUID, entity_id: UUID) -> EntityInfo | None:
        entity = self._entities.get(entity_id)
        if entity is None or entity.owner_id != owner_id:
            return None
        return entity

    def get_mapping(
        self, owner_id: UUID, normalized_label: str
    ) -> EntityMappingInfo | None:
        return self._mappings.get((owner_id, normalized_label))

    def save_mapping(self, mapping: EntityMappingInfo) -> EntityMappingInfo:
        key = (mapping.owner_id, mapping.normalized_label)
        with self._lock:
            existing = self._mappings.get(key)
            if existing is not None:
                mapping = replace(mapping, mapping_id=existing.mapping_id)
            self._mappings[key] = mapping
        return mapping

    def list_entries(
        self,
        owner_id: UUID,
        source_tag: str | None,
        date_range: DateRange,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntryInfo]:
        with self._lock:
            found = [
                e
                for e in self._entries.values()
                if e.owner_id == owner_id
                and date_range.contains(e.effective_date)
                and (source_tag is None or e.source_tag == source_tag)
                and (kind is None or e.kind == kind)
            ]
        return sorted(found, key=lambda e: e.effective_date)

    def get_entry(self, owner_id: UUID, entry_id: UUID) -> LedgerEntryInfo | None:
        entry = self._entries.get(entry_id)
        if entry is None or entry.owner_id != owner_id:
            return None
        return entry

    def children_of(self, owner_id: UUID, parent_id: UUID) -> list[LedgerEntryInfo]:
        with self._lock:
            return [
                e
                for e in self._entries.values()
                if e.owner_id == owner_id and e.parent_entry_id == parent_id
            ]

    def revenue_by_entity(
        self, owner_id: UUID, date_range: DateRange
    ) -> dict[UUID, Decimal]:
        totals: dict[UUID, Decimal] = defaultdict(Decimal)
        forecast = SourceTag.EXTERNAL_PENDING.value
        for entry in self.list_entries(owner_id, None, date_range, EntryKind.REVENUE):
            if entry.entity_id is not None and entry.source_tag != forecast:
                totals[entry.entity_id] += entry.amount
        return dict(totals)

    def delete_entries(self, owner_id: UUID, entry_ids: Sequence[UUID]) -> int:
        with self._lock:
            index: dict[UUID, list[UUID]] = defaultdict(list)
            for entry in self._entries.values():
                if entry.parent_entry_id is not None:
                    index[entry.parent_entry_id].append(entry.entry_id)
            deleted = 0
            for entry_id in iter_descendants(index, list(entry_ids)):
                entry = self._entries.get(entry_id)
                if entry is not None and entry.owner_id == owner_id:
                    del self._entries[entry_id]
                    deleted += 1
        return deleted

    def insert_entries(
        self, entries: Sequence[LedgerEntryInfo]
    ) -> list[LedgerEntryInfo]:
        with self._lock:
            pending = {e.entry_id for e in entries}
            for entry in entries:
                parent = entry.parent_entry_id
                if parent is not None and parent not in self._entries and parent not in pending:
                    raise ValueError(f"Unknown parent entry {parent}")
                self._entries[entry.entry_id] = entry
        return list(entries)

    def all_entries(self) -> list[LedgerEntryInfo]:
        with self._lock:
            return list(self._entries.values())

    @contextmanager
    def atomic(self, owner_id: UUID) -> Iterator[None]:
        """Snapshot the owner's rows; restore them if the block raises."""
        with self._lock:
            mappings = {k: v for k, v in self._mappings.items() if v.owner_id == owner_id}
            entries = {k: v for k, v in self._entries.items() if v.owner_id == owner_id}
        try:
            yield
        except Exception:
            with self._lock:
                self._mappings = {
                    k: v for k, v in self._mappings.items() if v.owner_id != owner_id
                }
                self._mappings.update(mappings)
                self._entries = {
                    k: v for k, v in self._entries.items() if v.owner_id != owner_id
                }
                self._entries.update(entries)
            raise
