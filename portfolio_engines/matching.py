"""
Module: portfolio_engines.matching
Responsibility:
    Match free-text external listing labels to internal properties: label
    normalization, pluggable similarity strategies, and the acceptance
    policy that decides between "accept and learn", "accept but ask for
    confirmation" and "reject".

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Learned mappings and the
    candidate list are supplied by the caller
    (portfolio_services.entity_resolver).

Invariants enforced:
    - A fuzzy candidate is accepted only when its similarity is at least
      ``accept_threshold`` AND strictly greater than the runner-up's.
    - Only matches at or above ``auto_learn_threshold`` may be learned
      automatically; accepted matches below it are flagged for confirmation.
    - Policy thresholds are independent of the similarity strategy.

Failure modes:
    - ValueError on thresholds outside 0..1 or accept > auto-learn.
    - ValueError on an unknown strategy name.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.dtos import EntityInfo
from portfolio_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_label(text: str | None) -> str:
    """Case-fold, strip diacritics, collapse punctuation and whitespace.

    >>> normalize_label("  Apto. Copacabana - 302 ")
    'apto copacabana 302'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub(" ", stripped.casefold()).strip()


# =============================================================================
# Similarity strategies
# =============================================================================


class SimilarityStrategy(Protocol):
    """Similarity in [0, 1] between two already-normalized labels."""

    name: str

    def similarity(self, left: str, right: str) -> float:
        ...


class LevenshteinSimilarity:
    """1 - edit distance / length of the longer label."""

    name = "levenshtein"

    def similarity(self, left: str, right: str) -> float:
        if not left and not right:
            return 1.0
        return Levenshtein.normalized_similarity(left, right)


class TokenSetSimilarity:
    """Word-set overlap; insensitive to word order and extra words."""

    name = "token_set"

    def similarity(self, left: str, right: str) -> float:
        return fuzz.token_set_ratio(left, right) / 100.0


SIMILARITY_STRATEGIES: dict[str, type] = {
    LevenshteinSimilarity.name: LevenshteinSimilarity,
    TokenSetSimilarity.name: TokenSetSimilarity,
}


def get_similarity_strategy(name: str) -> SimilarityStrategy:
    try:
        return SIMILARITY_STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown similarity strategy {name!r}; "
            f"expected one of {sorted(SIMILARITY_STRATEGIES)}"
        ) from None


# =============================================================================
# Policy and results
# =============================================================================


class MatchDecision(str, Enum):
    """What to do with the best fuzzy candidate."""

    AUTO_LEARN = "auto_learn"
    NEEDS_CONFIRMATION = "needs_confirmation"
    BELOW_THRESHOLD = "below_threshold"
    AMBIGUOUS = "ambiguous"
    NO_CANDIDATES = "no_candidates"


@dataclass(frozen=True)
class MatchPolicy:
    """Acceptance thresholds for fuzzy matches."""

    accept_threshold: float = 0.6
    auto_learn_threshold: float = 0.9

    def __post_init__(self) -> None:
        if not 0.0 <= self.accept_threshold <= 1.0:
            raise ValueError(f"accept_threshold out of range: {self.accept_threshold}")
        if not 0.0 <= self.auto_learn_threshold <= 1.0:
            raise ValueError(
                f"auto_learn_threshold out of range: {self.auto_learn_threshold}"
            )
        if self.accept_threshold > self.auto_learn_threshold:
            raise ValueError("accept_threshold must not exceed auto_learn_threshold")

    def decide(self, best: float, runner_up: float | None) -> MatchDecision:
        if best < self.accept_threshold:
            return MatchDecision.BELOW_THRESHOLD
        if runner_up is not None and best <= runner_up:
            return MatchDecision.AMBIGUOUS
        if best >= self.auto_learn_threshold:
            return MatchDecision.AUTO_LEARN
        return MatchDecision.NEEDS_CONFIRMATION


@dataclass(frozen=True)
class MatchCandidate:
    """Best similarity of one entity against a label."""

    entity_id: UUID
    matched_name: str
    similarity: float


@dataclass(frozen=True)
class FuzzyMatchResult:
    label: str
    normalized_label: str
    decision: MatchDecision
    best: MatchCandidate | None = None
    runner_up: MatchCandidate | None = None

    @property
    def accepted(self) -> bool:
        return self.decision in (MatchDecision.AUTO_LEARN, MatchDecision.NEEDS_CONFIRMATION)

    @property
    def entity_id(self) -> UUID | None:
        return self.best.entity_id if self.accepted and self.best else None


# =============================================================================
# Matcher
# =============================================================================


class EntityNameMatcher:
    """
    Exact and fuzzy matching of a label against candidate entities.

    Usage:
        matcher = EntityNameMatcher(LevenshteinSimilarity(), MatchPolicy())
        result = matcher.match(label="Loft Centro SP", entities=entities)
    """

    def __init__(
        self,
        strategy: SimilarityStrategy | None = None,
        policy: MatchPolicy | None = None,
    ):
        self.strategy = strategy or LevenshteinSimilarity()
        self.policy = policy or MatchPolicy()

    def exact_match(self, label: str, entities: Sequence[EntityInfo]) -> EntityInfo | None:
        """Entity whose name, nickname, external name or alias normalizes to the label.

        Returns None when no entity or more than one entity matches.
        """
        target = normalize_label(label)
        if not target:
            return None
        hits = {
            e.entity_id: e
            for e in entities
            if any(normalize_label(n) == target for n in e.labels())
        }
        if len(hits) > 1:
            logger.warning(
                "exact_match_ambiguous",
                extra={"label": label, "entity_count": len(hits)},
            )
            return None
        return next(iter(hits.values()), None)

    def score(self, normalized: str, entity: EntityInfo) -> MatchCandidate:
        best_name = entity.name
        best = 0.0
        for name in entity.labels():
            value = self.strategy.similarity(normalized, normalize_label(name))
            if value > best:
                best, best_name = value, name
        return MatchCandidate(entity.entity_id, best_name, best)

    @traced_engine("entity_name_match", "1.0", fingerprint_fields=("label",))
    def match(self, label: str, entities: Sequence[EntityInfo]) -> FuzzyMatchResult:
        normalized = normalize_label(label)
        if not normalized or not entities:
            return FuzzyMatchResult(label, normalized, MatchDecision.NO_CANDIDATES)

        ranked = sorted(
            (self.score(normalized, e) for e in entities),
            key=lambda c: c.similarity,
            reverse=True,
        )
        best = ranked[0]
        runner_up = ranked[1] if len(ranked) > 1 else None
        decision = self.policy.decide(
            best.similarity, runner_up.similarity if runner_up else None
        )

        logger.debug(
            "fuzzy_match_scored",
            extra={
                "label": label,
                "strategy": self.strategy.name,
                "best_similarity": round(best.similarity, 4),
                "runner_up_similarity": (
                    round(runner_up.similarity, 4) if runner_up else None
                ),
                "decision": decision.value,
            },
        )
        return FuzzyMatchResult(label, normalized, decision, best, runner_up)
