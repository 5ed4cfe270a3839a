"""
portfolio_ingestion.normalizer -- Layout detection and row normalization.

Responsibility:
    Turn report text into ExternalRecord values.  The header row selects the
    layout; each data row is then read through the layout's column map.

    NormalizedReport is a lazy, restartable iterable: every iteration
    re-scans the text it holds, so it can be walked more than once without
    re-reading the source.  ``parse_report`` materializes it into a
    ParsedReport (records + issues + counts).

Row handling:
    - Unhandled row types (anything other than payout / reservation /
      adjustment labels) are ignored and counted, not reported.
    - A row whose column count differs from the header is malformed: skipped,
      counted, reported.
    - Dates must be MM/DD/YYYY.  A bad transaction date, a bad check-in or
      check-out date, or an unparseable amount drops the row with a reason.
    - A historical payout without a paid amount is dropped with a reason.

Failure modes (fatal, raised before anything is written):
    - UndecodableReportError: bytes are not UTF-8.
    - EmptyReportError: no content, header only, or no usable rows.
    - UnrecognizedLayoutError: header fits no known layout.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterator, Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from portfolio_ingestion.adapters.base import ReportSource
from portfolio_ingestion.adapters.csv_adapter import CsvReportAdapter
from portfolio_ingestion.domain.layouts import (
    KNOWN_LAYOUTS,
    ReportLayout,
    detect_layout,
    record_type_for,
)
from portfolio_ingestion.domain.types import (
    LayoutKind,
    ParsedReport,
    ReportField,
    RowIssue,
    ScannedRow,
)
from portfolio_kernel.domain.amounts import parse_amount, parse_optional_amount
from portfolio_kernel.domain.dtos import ExternalRecord, RecordType
from portfolio_kernel.exceptions import AmountParseError, EmptyReportError
from portfolio_kernel.logging_config import get_logger

logger = get_logger("ingestion.normalizer")

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

DEFAULT_CURRENCY = "BRL"


class _RowRejected(Exception):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


def parse_report_date(text: str) -> date:
    """Parse MM/DD/YYYY.  Raises ValueError otherwise."""
    match = _US_DATE.match(text.strip())
    if not match:
        raise ValueError(f"date {text!r} is not MM/DD/YYYY")
    month, day, year = (int(part) for part in match.groups())
    return date(year, month, day)


class NormalizedReport:
    """
    Lazy view of a report as ExternalRecords.

    The header is read and the layout detected at construction, so layout
    errors surface immediately.  Data rows are scanned on each iteration.

    Usage:
        report = NormalizedReport(text)
        for record in report:
            ...
        parsed = report.materialize()
    """

    def __init__(
        self,
        text: str,
        *,
        layouts: Sequence[ReportLayout] = KNOWN_LAYOUTS,
        adapter: CsvReportAdapter | None = None,
        options: dict[str, Any] | None = None,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        self._text = text
        self._adapter = adapter or CsvReportAdapter()
        self._options = options or {}
        self.default_currency = default_currency

        if not text.strip():
            raise EmptyReportError("no content")

        header = next(self._adapter.rows(text, self._options), None)
        if not header:
            raise EmptyReportError("no header row")
        self.columns: tuple[str, ...] = tuple(header)
        self.layout, self._column_map = detect_layout(header, layouts)

        logger.info(
            "report_layout_detected",
            extra={"layout": self.layout.kind.value, "columns": len(header)},
        )

    @property
    def kind(self) -> LayoutKind:
        return self.layout.kind

    def __iter__(self) -> Iterator[ExternalRecord]:
        for scanned in self.scan():
            if scanned.record is not None:
                yield scanned.record

    def scan(self) -> Iterator[ScannedRow]:
        """Yield one ScannedRow per data row, in file order."""
        rows = self._adapter.rows(self._text, self._options)
        next(rows, None)  # header
        source_row = 0
        try:
            for fields in rows:
                source_row += 1
                yield self._scan_row(source_row, fields)
        except csv.Error as exc:
            # The reader cannot resume; count what is left by physical line
            data_lines = sum(1 for line in self._text.splitlines() if line.strip()) - 1
            unread = max(data_lines - source_row, 1)
            yield ScannedRow(
                source_row=source_row + 1,
                issue=RowIssue(
                    source_row + 1,
                    f"malformed CSV: {exc}; {unread} remaining line(s) not read",
                ),
            )

    def materialize(self) -> ParsedReport:
        records: list[ExternalRecord] = []
        issues: list[RowIssue] = []
        ignored = 0
        total = 0
        for scanned in self.scan():
            total += 1
            if scanned.record is not None:
                records.append(scanned.record)
            elif scanned.issue is not None:
                issues.append(scanned.issue)
            else:
                ignored += 1

        for issue in issues:
            logger.warning(
                "report_row_dropped",
                extra={"source_row": issue.source_row, "reason": issue.reason},
            )

        return ParsedReport(
            layout=self.kind,
            columns=self.columns,
            records=tuple(records),
            issues=tuple(issues),
            ignored_count=ignored,
            total_rows=total,
        )

    # ------------------------------------------------------------------
    # Row parsing
    # ------------------------------------------------------------------

    def _cell(self, fields: list[str], field: ReportField) -> str:
        index = self._column_map.get(field)
        if index is None:
            return ""
        return fields[index]

    def _scan_row(self, source_row: int, fields: list[str]) -> ScannedRow:
        if len(fields) != len(self.columns):
            return ScannedRow(
                source_row=source_row,
                issue=RowIssue(
                    source_row,
                    f"expected {len(self.columns)} columns, found {len(fields)}",
                ),
            )

        raw_type = self._cell(fields, ReportField.RECORD_TYPE)
        record_type = record_type_for(raw_type)
        if record_type is None:
            return ScannedRow(source_row=source_row)

        try:
            record = self._build_record(source_row, record_type, fields)
        except _RowRejected as rejected:
            return ScannedRow(
                source_row=source_row,
                issue=RowIssue(source_row, rejected.reason, raw_type=raw_type),
            )
        return ScannedRow(source_row=source_row, record=record)

    def _date(self, fields: list[str], field: ReportField, *, required: bool) -> date | None:
        text = self._cell(fields, field)
        if not text:
            if required:
                raise _RowRejected(f"missing {field.value}")
            return None
        try:
            return parse_report_date(text)
        except ValueError as exc:
            raise _RowRejected(f"invalid {field.value}: {exc}") from exc

    def _amount(self, fields: list[str], field: ReportField) -> Decimal | None:
        try:
            return parse_optional_amount(self._cell(fields, field))
        except AmountParseError as exc:
            raise _RowRejected(f"invalid {field.value}: {exc.reason} ({exc.raw_value!r})") from exc

    def _build_record(
        self, source_row: int, record_type: RecordType, fields: list[str]
    ) -> ExternalRecord:
        transaction_date = self._date(fields, ReportField.TRANSACTION_DATE, required=True)
        check_in = self._date(fields, ReportField.CHECK_IN, required=False)
        check_out = self._date(fields, ReportField.CHECK_OUT, required=False)

        amount = self._amount(fields, ReportField.AMOUNT)
        gross = self._amount(fields, ReportField.GROSS_EARNINGS)
        paid: Decimal | None = None

        if record_type == RecordType.PAYOUT and self.kind == LayoutKind.HISTORICAL:
            paid = self._amount(fields, ReportField.PAID_AMOUNT)
            if paid is None:
                raise _RowRejected("payout without paid amount")
            gross_amount = amount if amount is not None else paid
        elif self.kind == LayoutKind.PENDING:
            gross_amount = gross if gross is not None else amount
        else:
            gross_amount = amount
        if gross_amount is None:
            gross_amount = Decimal("0")

        nights_text = self._cell(fields, ReportField.NIGHTS)
        nights = int(nights_text) if nights_text.isdigit() else None

        return ExternalRecord(
            record_type=record_type,
            transaction_date=transaction_date,
            external_entity_label=self._cell(fields, ReportField.LISTING),
            gross_amount=gross_amount,
            currency=(self._cell(fields, ReportField.CURRENCY) or self.default_currency).upper(),
            source_row=source_row,
            paid_amount=paid,
            confirmation_code=self._cell(fields, ReportField.CONFIRMATION_CODE) or None,
            check_in_date=check_in,
            check_out_date=check_out,
            nights=nights,
            guest_name=self._cell(fields, ReportField.GUEST) or None,
        )


def parse_report(
    source: ReportSource,
    *,
    layouts: Sequence[ReportLayout] = KNOWN_LAYOUTS,
    options: dict[str, Any] | None = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> ParsedReport:
    """Decode, detect and normalize a report in one pass.

    Raises:
        UndecodableReportError, EmptyReportError, UnrecognizedLayoutError.
    """
    adapter = CsvReportAdapter()
    text = adapter.decode(source)
    report = NormalizedReport(
        text,
        layouts=layouts,
        adapter=adapter,
        options=options,
        default_currency=default_currency,
    )
    parsed = report.materialize()

    if parsed.total_rows == 0:
        raise EmptyReportError("header only, no data rows")
    if not parsed.records:
        raise EmptyReportError(
            f"none of {parsed.total_rows} data rows could be used"
        )

    logger.info(
        "report_parsed",
        extra={
            "layout": parsed.layout.value,
            "records": len(parsed.records),
            "skipped": parsed.skipped_count,
            "issues": len(parsed.issues),
        },
    )
    return parsed
