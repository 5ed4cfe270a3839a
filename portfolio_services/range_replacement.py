"""
portfolio_services.range_replacement -- Idempotent replace-by-range writes.

Responsibility:
    Replaces every entry of one owner and source tag whose effective date
    falls inside a range with a new set of entries: the stale entries (and,
    by cascade, their children) are deleted, then the new ones inserted.
    Re-running an import over the same range therefore leaves exactly one
    copy of its entries.

Architecture position:
    Services -- runs inside the caller's unit of work
    (``LedgerStore.atomic``); it neither commits nor rolls back.

Invariants enforced:
    - Only entries with the given ``source_tag`` are touched; manual or
      other-source entries in the same range survive.
    - Deletion happens before insertion.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from portfolio_kernel.domain.dtos import DateRange, LedgerEntryInfo
from portfolio_kernel.domain.repository import LedgerStore
from portfolio_kernel.logging_config import get_logger

logger = get_logger("services.range_replacement")


@dataclass(frozen=True)
class ReplacementResult:
    deleted_count: int
    inserted: tuple[LedgerEntryInfo, ...]

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)


class RangeReplacementService:
    """Delete-then-insert of one source tag over a date range."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def replace(
        self,
        owner_id: UUID,
        source_tag: str,
        date_range: DateRange,
        new_entries: Sequence[LedgerEntryInfo],
    ) -> ReplacementResult:
        stale = self.store.list_entries(owner_id, source_tag, date_range)
        deleted = self.store.delete_entries(owner_id, [e.entry_id for e in stale])
        inserted = self.store.insert_entries(list(new_entries)) if new_entries else []

        logger.info(
            "range_replaced",
            extra={
                "source_tag": source_tag,
                "range_start": date_range.start,
                "range_end": date_range.end,
                "deleted_count": deleted,
                "inserted_count": len(inserted),
            },
        )
        return ReplacementResult(deleted_count=deleted, inserted=tuple(inserted))
