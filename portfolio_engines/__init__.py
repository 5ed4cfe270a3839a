"""
Module: portfolio_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines:
    proportional distribution, label matching, payout attribution and
    reconciliation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import portfolio_kernel domain/db types and logging.
    MUST NOT import portfolio_ingestion or portfolio_services.

Invariants enforced:
    - Purity: engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` and emit
    PORTFOLIO_ENGINE_TRACE records with an input fingerprint.
"""

from portfolio_engines.attribution import (
    AttributedAmount,
    AttributionResult,
    PayoutAttribution,
    PayoutAttributionEngine,
)
from portfolio_engines.distribution import (
    DistributionResult,
    DistributionShare,
    DistributionWeight,
    ProportionalDistributor,
    WeightBasis,
)
from portfolio_engines.matching import (
    EntityNameMatcher,
    FuzzyMatchResult,
    LevenshteinSimilarity,
    MatchDecision,
    MatchPolicy,
    SimilarityStrategy,
    TokenSetSimilarity,
    get_similarity_strategy,
    normalize_label,
)
from portfolio_engines.reconciliation import (
    ReconciliationChecker,
    ReconciliationLine,
    ReconciliationReport,
)

__all__ = [
    "AttributedAmount",
    "AttributionResult",
    "DistributionResult",
    "DistributionShare",
    "DistributionWeight",
    "EntityNameMatcher",
    "FuzzyMatchResult",
    "LevenshteinSimilarity",
    "MatchDecision",
    "MatchPolicy",
    "PayoutAttribution",
    "PayoutAttributionEngine",
    "ProportionalDistributor",
    "ReconciliationChecker",
    "ReconciliationLine",
    "ReconciliationReport",
    "SimilarityStrategy",
    "TokenSetSimilarity",
    "WeightBasis",
    "get_similarity_strategy",
    "normalize_label",
]
