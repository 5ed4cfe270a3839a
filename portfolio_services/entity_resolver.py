"""
portfolio_services.entity_resolver -- Label to property resolution with learning.

Responsibility:
    Resolves the free-text listing label of an external report row to one
    of the owner's properties, in order:
        1. a learned mapping (exact match on the normalized label),
        2. an exact normalized match on any active property's name,
           nickname, external name or alias,
        3. a fuzzy match accepted by the MatchPolicy.
    Fuzzy matches at or above the auto-learn threshold are persisted as
    ``auto`` mappings; accepted matches below it are returned but flagged
    for confirmation.  ``confirm`` persists a ``confirmed`` mapping.

Architecture position:
    Services -- composes the pure EntityNameMatcher with a LedgerStore.

Invariants enforced:
    - Only active properties of the requesting owner are candidates.
    - A label resolves to at most one property.
    - Mappings are owner-scoped; one owner's mappings never affect another.

Failure modes:
    - EntityNotFoundError from ``confirm`` when the property does not exist
      for the owner.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from portfolio_engines.matching import (
    EntityNameMatcher,
    MatchDecision,
    normalize_label,
)
from portfolio_kernel.domain.dtos import EntityInfo, EntityMappingInfo, MappingSource
from portfolio_kernel.domain.repository import LedgerStore
from portfolio_kernel.exceptions import EntityNotFoundError
from portfolio_kernel.logging_config import get_logger

logger = get_logger("services.entity_resolver")


class ResolutionMethod(str, Enum):
    LEARNED = "learned"
    EXACT = "exact"
    FUZZY = "fuzzy"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one label."""

    label: str
    entity_id: UUID | None
    method: ResolutionMethod
    similarity: float | None = None
    needs_confirmation: bool = False
    learned: bool = False
    decision: MatchDecision | None = None

    @property
    def resolved(self) -> bool:
        return self.entity_id is not None


class EntityResolver:
    """
    Resolve report labels to properties for one store.

    Usage:
        resolver = EntityResolver(store)
        entity_id = resolver.resolve("Loft Centro", owner_id)
    """

    def __init__(
        self,
        store: LedgerStore,
        matcher: EntityNameMatcher | None = None,
    ):
        self.store = store
        self.matcher = matcher or EntityNameMatcher()

    def resolve(self, label: str, owner_id: UUID) -> UUID | None:
        return self.resolve_detailed(label, owner_id).entity_id

    def resolve_detailed(
        self,
        label: str,
        owner_id: UUID,
        entities: list[EntityInfo] | None = None,
        *,
        learn: bool = True,
    ) -> Resolution:
        """Resolve one label.  With ``learn=False`` nothing is persisted."""
        normalized = normalize_label(label)
        if not normalized:
            return Resolution(label, None, ResolutionMethod.UNRESOLVED)

        if entities is None:
            entities = self._active_entities(owner_id)
        active_ids = {e.entity_id for e in entities}

        mapping = self.store.get_mapping(owner_id, normalized)
        if mapping is not None and mapping.entity_id in active_ids:
            return Resolution(label, mapping.entity_id, ResolutionMethod.LEARNED)

        exact = self.matcher.exact_match(label, entities)
        if exact is not None:
            return Resolution(label, exact.entity_id, ResolutionMethod.EXACT, similarity=1.0)

        result = self.matcher.match(label=label, entities=entities)
        similarity = result.best.similarity if result.best else None

        if not result.accepted:
            logger.warning(
                "label_unmapped",
                extra={
                    "label": label,
                    "decision": result.decision.value,
                    "best_similarity": similarity,
                },
            )
            return Resolution(
                label,
                None,
                ResolutionMethod.UNRESOLVED,
                similarity=similarity,
                decision=result.decision,
            )

        auto = result.decision == MatchDecision.AUTO_LEARN
        learned = auto and learn
        if learned:
            self.store.save_mapping(
                EntityMappingInfo(
                    owner_id=owner_id,
                    normalized_label=normalized,
                    entity_id=result.entity_id,
                    source=MappingSource.AUTO,
                    raw_label=label,
                    similarity=Decimal(str(round(similarity, 4))),
                )
            )
            logger.info(
                "label_mapping_learned",
                extra={
                    "label": label,
                    "entity_id": str(result.entity_id),
                    "similarity": similarity,
                },
            )
        elif not auto:
            logger.info(
                "label_mapping_needs_confirmation",
                extra={
                    "label": label,
                    "entity_id": str(result.entity_id),
                    "similarity": similarity,
                },
            )

        return Resolution(
            label,
            result.entity_id,
            ResolutionMethod.FUZZY,
            similarity=similarity,
            needs_confirmation=not auto,
            learned=learned,
            decision=result.decision,
        )

    def resolve_all(
        self, labels: Iterable[str], owner_id: UUID, *, learn: bool = True
    ) -> dict[str, Resolution]:
        """Resolve each distinct label once, in first-seen order."""
        entities = self._active_entities(owner_id)
        resolutions: dict[str, Resolution] = {}
        for label in labels:
            if label not in resolutions:
                resolutions[label] = self.resolve_detailed(
                    label, owner_id, entities, learn=learn
                )
        return resolutions

    def confirm(self, label: str, owner_id: UUID, entity_id: UUID) -> EntityMappingInfo:
        """Persist a user-confirmed mapping of ``label`` to ``entity_id``."""
        if self.store.get_entity(owner_id, entity_id) is None:
            raise EntityNotFoundError(str(entity_id), str(owner_id))
        mapping = self.store.save_mapping(
            EntityMappingInfo(
                owner_id=owner_id,
                normalized_label=normalize_label(label),
                entity_id=entity_id,
                source=MappingSource.CONFIRMED,
                raw_label=label,
            )
        )
        logger.info(
            "label_mapping_confirmed",
            extra={"label": label, "entity_id": str(entity_id)},
        )
        return mapping

    def _active_entities(self, owner_id: UUID) -> list[EntityInfo]:
        return [e for e in self.store.list_entities(owner_id) if e.is_active]
