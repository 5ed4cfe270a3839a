"""
Configuration Loader (``portfolio_config.loader``).

Responsibility
--------------
Loads YAML settings files and parses them into the frozen dataclasses of
``portfolio_config.schema``.  The runtime entry point is
``portfolio_config.get_active_config()``; services never read files.

Invariants enforced
-------------------
* Unknown keys in any section (including owner overrides) raise
  ``ValueError``; typos never silently fall back to defaults.
* Thresholds are validated: 0 <= accept <= auto-learn <= 1.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from portfolio_config.schema import (
    AllocationSettings,
    EngineSettings,
    ImportSettings,
    ReconciliationSettings,
    ResolverSettings,
)

_SECTIONS: dict[str, type] = {
    "resolver": ResolverSettings,
    "reconciliation": ReconciliationSettings,
    "imports": ImportSettings,
    "allocation": AllocationSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _check_keys(section: str, data: dict[str, Any]) -> None:
    allowed = {f.name for f in dataclasses.fields(_SECTIONS[section])}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(
            f"Unknown key(s) in '{section}': {', '.join(sorted(unknown))}"
        )


def _validate_resolver(settings: ResolverSettings) -> None:
    if not 0.0 <= settings.accept_threshold <= settings.auto_learn_threshold <= 1.0:
        raise ValueError(
            "resolver thresholds must satisfy 0 <= accept_threshold "
            "<= auto_learn_threshold <= 1"
        )


def parse_resolver(data: dict[str, Any]) -> ResolverSettings:
    _check_keys("resolver", data)
    settings = ResolverSettings(
        accept_threshold=float(data.get("accept_threshold", 0.6)),
        auto_learn_threshold=float(data.get("auto_learn_threshold", 0.9)),
        similarity_strategy=str(data.get("similarity_strategy", "levenshtein")),
    )
    _validate_resolver(settings)
    return settings


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationSettings:
    _check_keys("reconciliation", data)
    tolerance = Decimal(str(data.get("tolerance", "0.01")))
    if tolerance < 0:
        raise ValueError(f"reconciliation tolerance must be non-negative, got {tolerance}")
    return ReconciliationSettings(tolerance=tolerance)


def parse_imports(data: dict[str, Any]) -> ImportSettings:
    _check_keys("imports", data)
    timeout = data.get("lock_timeout_seconds", 30.0)
    return ImportSettings(
        default_currency=str(data.get("default_currency", "BRL")).upper(),
        decimal_places=int(data.get("decimal_places", 2)),
        lock_timeout_seconds=float(timeout) if timeout is not None else None,
    )


def parse_allocation(data: dict[str, Any]) -> AllocationSettings:
    _check_keys("allocation", data)
    settings = AllocationSettings(
        expense_lookback_days=int(data.get("expense_lookback_days", 30)),
        default_installments=int(data.get("default_installments", 1)),
    )
    if settings.expense_lookback_days < 1 or settings.default_installments < 1:
        raise ValueError("allocation settings must be positive")
    return settings


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """Parse a full settings document."""
    owners_raw = data.get("owners") or {}
    owner_overrides: dict[str, dict[str, Any]] = {}
    for owner_id, sections in owners_raw.items():
        sections = sections or {}
        for section, values in sections.items():
            if section not in _SECTIONS:
                raise ValueError(f"Unknown section '{section}' for owner {owner_id}")
            _check_keys(section, values or {})
        owner_overrides[str(owner_id)] = {k: dict(v or {}) for k, v in sections.items()}

    settings = EngineSettings(
        resolver=parse_resolver(data.get("resolver") or {}),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        imports=parse_imports(data.get("imports") or {}),
        allocation=parse_allocation(data.get("allocation") or {}),
        owner_overrides=owner_overrides,
    )

    for owner_id in owner_overrides:
        _validate_resolver(settings.for_owner(owner_id).resolver)

    return dataclasses.replace(settings, checksum=compute_checksum(data))


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a settings document."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_settings(path: Path) -> EngineSettings:
    return parse_settings(load_yaml_file(path))
