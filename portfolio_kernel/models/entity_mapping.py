"""
Module: portfolio_kernel.models.entity_mapping
Responsibility: ORM persistence for learned label -> property associations.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py only.

Invariants enforced:
    - At most one mapping per (owner_id, normalized_label)
      (uq_entity_mapping_owner_label).
    - Mappings are never deleted automatically.  A confirmed mapping may
      replace an automatic one for the same label.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import TrackedBase, UUIDString
from portfolio_kernel.domain.dtos import EntityMappingInfo, MappingSource


class EntityMappingModel(TrackedBase):
    """A normalized external label resolved to a property."""

    __tablename__ = "entity_mappings"

    __table_args__ = (
        UniqueConstraint(
            "owner_id", "normalized_label", name="uq_entity_mapping_owner_label"
        ),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    normalized_label: Mapped[str] = mapped_column(String(500), nullable=False)

    # Label as it first appeared in a report
    raw_label: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=False,
    )

    source: Mapped[str] = mapped_column(String(20), nullable=False)

    similarity: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self) -> EntityMappingInfo:
        return EntityMappingInfo(
            owner_id=self.owner_id,
            normalized_label=self.normalized_label,
            entity_id=self.entity_id,
            source=MappingSource(self.source),
            raw_label=self.raw_label,
            similarity=self.similarity,
            mapping_id=self.id,
        )

    def __repr__(self) -> str:
        return f"<EntityMapping {self.normalized_label!r} -> {self.entity_id} ({self.source})>"
