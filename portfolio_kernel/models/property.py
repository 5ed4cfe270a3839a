"""
Module: portfolio_kernel.models.property
Responsibility: ORM persistence for properties -- the internal cost/revenue
    centres an owner books revenue and expenses against.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py only.

Invariants enforced:
    - Every property belongs to exactly one owner; resolution and allocation
      never look across owners.
    - Inactive properties keep their history but are not offered as
      resolution or allocation targets.

Failure modes:
    - IntegrityError on a duplicate (owner_id, name) pair.
"""

from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import TrackedBase, UUIDString
from portfolio_kernel.domain.dtos import EntityInfo


class PropertyModel(TrackedBase):
    """
    A property owned by an owner.

    Guarantees:
        - name is unique per owner (uq_property_owner_name).
        - aliases is always a list (possibly empty).
        - external_name holds the listing title used by the booking platform.
    """

    __tablename__ = "properties"

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_property_owner_name"),
        Index("idx_property_owner_active", "owner_id", "is_active"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    nickname: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Listing title as shown in platform exports
    external_name: Mapped[str | None] = mapped_column(String(500), nullable=True)

    aliases: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> EntityInfo:
        return EntityInfo(
            entity_id=self.id,
            owner_id=self.owner_id,
            name=self.name,
            nickname=self.nickname,
            external_name=self.external_name,
            aliases=tuple(self.aliases or ()),
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Property {self.name} owner={self.owner_id}>"
