"""
CSV report adapter.

Accepts report content as text, bytes or a file path.  Bytes are decoded
strictly as UTF-8 with any BOM stripped (utf-8-sig).  Uses csv.reader over
the decoded text, so quoted fields may hold delimiters and newlines and any
newline convention (LF, CRLF, CR) is accepted.  Blank lines are skipped.

Configurable: delimiter (auto-detected from the header line when absent) and
quoting.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any, Iterator

from portfolio_ingestion.adapters.base import ReportSource, SourceProbe
from portfolio_kernel.exceptions import UndecodableReportError

_QUOTING = {
    "minimal": csv.QUOTE_MINIMAL,
    "all": csv.QUOTE_ALL,
    "none": csv.QUOTE_NONE,
}

_CANDIDATE_DELIMITERS = (",", ";", "\t")


def _get_quoting(options: dict[str, Any]) -> int:
    q = options.get("quoting", "minimal")
    if isinstance(q, int):
        return q
    return _QUOTING.get(str(q).lower(), csv.QUOTE_MINIMAL)


def _sniff_delimiter(text: str) -> str:
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    counts = {d: first_line.count(d) for d in _CANDIDATE_DELIMITERS}
    best = max(counts, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


class CsvReportAdapter:
    """Decode report content and yield its non-blank rows."""

    def decode(self, source: ReportSource) -> str:
        if isinstance(source, Path):
            source = source.read_bytes()
        if isinstance(source, bytes):
            try:
                return source.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise UndecodableReportError(exc.start, exc.reason) from exc
        return source.removeprefix("\ufeff")

    def delimiter_for(self, text: str, options: dict[str, Any]) -> str:
        return options.get("delimiter") or _sniff_delimiter(text)

    def rows(self, text: str, options: dict[str, Any] | None = None) -> Iterator[list[str]]:
        """Yield each non-blank row as a list of trimmed fields."""
        options = options or {}
        reader = csv.reader(
            io.StringIO(text, newline=""),
            delimiter=self.delimiter_for(text, options),
            quoting=_get_quoting(options),
        )
        for row in reader:
            if not row or all(not cell.strip() for cell in row):
                continue
            yield [cell.strip() for cell in row]

    def probe(self, source: ReportSource, options: dict[str, Any] | None = None) -> SourceProbe:
        options = options or {}
        text = self.decode(source)
        sample_size = 5
        rows = self.rows(text, options)
        columns = tuple(next(rows, ()))
        sample: list[dict[str, Any]] = []
        count = 0
        for row in rows:
            if len(sample) < sample_size:
                sample.append(dict(zip(columns, row)))
            count += 1
        return SourceProbe(
            row_count=count,
            columns=columns,
            sample_rows=tuple(sample),
            encoding="utf-8",
            detected_delimiter=self.delimiter_for(text, options),
        )
