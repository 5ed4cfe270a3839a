"""
SqlLedgerStore -- SQLAlchemy implementation of the LedgerStore contract.

Responsibility:
    Persists properties, learned mappings and ledger entries through a
    caller-supplied Session.  Reads go through LedgerSelector; writes flush
    within the active transaction.  ``atomic(owner_id)`` is the only place
    that commits or rolls back.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Unit of work: everything inside ``atomic`` commits together or not at
      all.  SQLAlchemy failures surface as LedgerPersistenceError after the
      rollback.
    - Per-owner serialization on PostgreSQL: ``atomic`` takes a
      transaction-scoped advisory lock keyed by the owner id, released at
      commit/rollback.
    - Cascade: deleting an entry deletes its descendants first; the returned
      count includes them.

Failure modes:
    - LedgerPersistenceError on IntegrityError/OperationalError inside atomic.
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_kernel.domain.dtos import (
    DateRange,
    EntityInfo,
    EntityMappingInfo,
    EntryKind,
    LedgerEntryInfo,
)
from portfolio_kernel.domain.repository import iter_descendants
from portfolio_kernel.exceptions import LedgerPersistenceError
from portfolio_kernel.logging_config import get_logger
from portfolio_kernel.models.entity_mapping import EntityMappingModel
from portfolio_kernel.models.ledger_entry import LedgerEntryModel
from portfolio_kernel.models.property import PropertyModel
from portfolio_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("services.sql_store")


def advisory_lock_key(owner_id: UUID) -> int:
    """Signed 64-bit key derived from the owner id."""
    return owner_id.int & 0x7FFF_FFFF_FFFF_FFFF


class SqlLedgerStore:
    """LedgerStore over a SQLAlchemy Session."""

    def __init__(self, session: Session, actor_id: UUID):
        self.session = session
        self.actor_id = actor_id
        self._selector = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Entities and mappings
    # ------------------------------------------------------------------

    def add_entity(self, entity: EntityInfo) -> EntityInfo:
        row = PropertyModel(
            id=entity.entity_id,
            owner_id=entity.owner_id,
            name=entity.name,
            nickname=entity.nickname,
            external_name=entity.external_name,
            aliases=list(entity.aliases),
            is_active=entity.is_active,
            created_by_id=self.actor_id,
        )
        self.session.add(row)
        self.session.flush()
        return row.to_dto()

    def list_entities(self, owner_id: UUID) -> list[EntityInfo]:
        return self._selector.entities(owner_id)

    def get_entity(self, owner_id: UUID, entity_id: UUID) -> EntityInfo | None:
        return self._selector.entity(owner_id, entity_id)

    def get_mapping(
        self, owner_id: UUID, normalized_label: str
    ) -> EntityMappingInfo | None:
        return self._selector.mapping(owner_id, normalized_label)

    def save_mapping(self, mapping: EntityMappingInfo) -> EntityMappingInfo:
        stmt = select(EntityMappingModel).where(
            EntityMappingModel.owner_id == mapping.owner_id,
            EntityMappingModel.normalized_label == mapping.normalized_label,
        )
        row = self.session.scalars(stmt).one_or_none()
        if row is None:
            row = EntityMappingModel(
                id=mapping.mapping_id,
                owner_id=mapping.owner_id,
                normalized_label=mapping.normalized_label,
                created_by_id=self.actor_id,
            )
            self.session.add(row)
        else:
            row.updated_by_id = self.actor_id
        row.entity_id = mapping.entity_id
        row.source = mapping.source.value
        row.raw_label = mapping.raw_label
        row.similarity = mapping.similarity
        self.session.flush()
        return row.to_dto()

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    def list_entries(
        self,
        owner_id: UUID,
        source_tag: str | None,
        date_range: DateRange,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntryInfo]:
        return self._selector.entries(owner_id, source_tag, date_range, kind)

    def get_entry(self, owner_id: UUID, entry_id: UUID) -> LedgerEntryInfo | None:
        return self._selector.entry(owner_id, entry_id)

    def children_of(self, owner_id: UUID, parent_id: UUID) -> list[LedgerEntryInfo]:
        return self._selector.child_entries(owner_id, parent_id)

    def revenue_by_entity(
        self, owner_id: UUID, date_range: DateRange
    ) -> dict[UUID, Decimal]:
        return self._selector.revenue_by_entity(owner_id, date_range)

    def delete_entries(self, owner_id: UUID, entry_ids: Sequence[UUID]) -> int:
        if not entry_ids:
            return 0

        # Build the full parent -> children index level by level
        index: dict[UUID, list[UUID]] = {}
        frontier = list(entry_ids)
        while frontier:
            level = self._selector.children(owner_id, frontier)
            index.update(level)
            frontier = [c for kids in level.values() for c in kids if c not in index]

        doomed = list(iter_descendants(index, list(entry_ids)))
        result = self.session.execute(
            delete(LedgerEntryModel)
            .where(
                LedgerEntryModel.owner_id == owner_id,
                LedgerEntryModel.id.in_(doomed),
            )
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        deleted = result.rowcount or 0
        logger.debug(
            "ledger_entries_deleted",
            extra={"requested": len(entry_ids), "deleted": deleted},
        )
        return deleted

    def insert_entries(
        self, entries: Sequence[LedgerEntryInfo]
    ) -> list[LedgerEntryInfo]:
        # Parents before children so the self-reference resolves on flush
        ordered = sorted(entries, key=lambda e: e.parent_entry_id is not None)
        rows = [LedgerEntryModel.from_dto(e, self.actor_id) for e in ordered]
        for row in rows:
            self.session.add(row)
            if row.parent_entry_id is None:
                self.session.flush()
        self.session.flush()
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self, owner_id: UUID) -> Iterator[None]:
        """Commit on success, roll back on any exception."""
        try:
            if self.session.get_bind().dialect.name == "postgresql":
                self.session.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"),
                    {"key": advisory_lock_key(owner_id)},
                )
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "ledger_unit_of_work_failed",
                extra={"owner_id": str(owner_id)},
                exc_info=True,
            )
            raise LedgerPersistenceError(str(owner_id), str(exc)) from exc
        except Exception:
            self.session.rollback()
            logger.warning(
                "ledger_unit_of_work_rolled_back",
                extra={"owner_id": str(owner_id)},
            )
            raise
