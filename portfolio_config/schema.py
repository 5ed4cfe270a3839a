"""
Engine settings schema.

Frozen dataclasses parsed from YAML by ``portfolio_config.loader``.  The
system-wide values live in ``defaults.yaml``; an owner may override any of
them under ``owners.<owner-id>``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class ResolverSettings:
    """Fuzzy label matching."""

    accept_threshold: float = 0.6
    auto_learn_threshold: float = 0.9
    similarity_strategy: str = "levenshtein"


@dataclass(frozen=True)
class ReconciliationSettings:
    tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class ImportSettings:
    default_currency: str = "BRL"
    decimal_places: int = 2
    lock_timeout_seconds: float | None = 30.0


@dataclass(frozen=True)
class AllocationSettings:
    """Reference periods for revenue-share allocation."""

    expense_lookback_days: int = 30
    default_installments: int = 1


@dataclass(frozen=True)
class EngineSettings:
    """All engine settings, plus raw per-owner override sections."""

    resolver: ResolverSettings = field(default_factory=ResolverSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    allocation: AllocationSettings = field(default_factory=AllocationSettings)
    owner_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    checksum: str = ""

    def for_owner(self, owner_id: UUID | str) -> EngineSettings:
        """Settings with the owner's overrides applied (if any)."""
        overrides = self.owner_overrides.get(str(owner_id))
        if not overrides:
            return self
        return replace(
            self,
            resolver=replace(self.resolver, **overrides.get("resolver", {})),
            reconciliation=replace(
                self.reconciliation,
                **_decimals(overrides.get("reconciliation", {}), ("tolerance",)),
            ),
            imports=replace(self.imports, **overrides.get("imports", {})),
            allocation=replace(self.allocation, **overrides.get("allocation", {})),
            owner_overrides={},
        )


def _decimals(data: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    out = dict(data)
    for key in keys:
        if key in out and out[key] is not None:
            out[key] = Decimal(str(out[key]))
    return out
