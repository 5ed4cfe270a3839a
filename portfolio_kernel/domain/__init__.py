"""Pure domain layer: DTOs, amount parsing, clock, repository contract."""

from portfolio_kernel.domain.amounts import parse_amount, parse_optional_amount
from portfolio_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from portfolio_kernel.domain.dtos import (
    DateRange,
    EntityInfo,
    EntityMappingInfo,
    EntryKind,
    ExternalRecord,
    LedgerEntryInfo,
    MappingSource,
    RecordType,
    SourceTag,
)
from portfolio_kernel.domain.repository import LedgerStore

__all__ = [
    "Clock",
    "DateRange",
    "DeterministicClock",
    "EntityInfo",
    "EntityMappingInfo",
    "EntryKind",
    "ExternalRecord",
    "LedgerEntryInfo",
    "LedgerStore",
    "MappingSource",
    "RecordType",
    "SourceTag",
    "SystemClock",
    "parse_amount",
    "parse_optional_amount",
]
