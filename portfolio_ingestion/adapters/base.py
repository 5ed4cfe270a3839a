"""
Source adapter protocol and probe DTO.

Contract:
    SourceAdapter.decode() turns raw report content into text.
    SourceAdapter.rows() yields each non-blank row as a list of fields.
    SourceAdapter.probe() returns a quick snapshot: row count, columns, sample rows.

Architecture: portfolio_ingestion/adapters. File I/O only, no DB access.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable

ReportSource = str | bytes | Path


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading tabular report content."""

    def decode(self, source: ReportSource) -> str:
        ...

    def rows(self, text: str, options: dict[str, Any] | None = None) -> Iterator[list[str]]:
        ...

    def probe(self, source: ReportSource, options: dict[str, Any] | None = None) -> "SourceProbe":
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a report (data row count, header, first N rows)."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[dict[str, Any], ...]
    encoding: str | None = None
    detected_delimiter: str | None = None
