"""
portfolio_ingestion.domain.layouts -- Declarative report layouts.

A layout lists the semantic fields it reads and the header names each field
may appear under (Portuguese and English platform exports).  Columns are
always located by header name, never by position, so reordered or extra
columns are harmless.

Detection walks KNOWN_LAYOUTS in order and picks the first whose required
fields are present and whose excluded fields are absent.  The historical
layout is the only one with a paid-amount column.

ZERO I/O.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass

from portfolio_ingestion.domain.types import LayoutKind, ReportField
from portfolio_kernel.domain.dtos import RecordType
from portfolio_kernel.exceptions import UnrecognizedLayoutError


def normalize_header(text: str) -> str:
    """Case-fold, strip accents and surrounding/duplicate whitespace."""
    decomposed = unicodedata.normalize("NFKD", text.strip())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


@dataclass(frozen=True)
class FieldSpec:
    """One semantic field and the header names it may appear under."""

    field: ReportField
    headers: tuple[str, ...]
    required: bool = False

    def matches(self, header: str) -> bool:
        target = normalize_header(header)
        return any(normalize_header(h) == target for h in self.headers)


_DATE = FieldSpec(ReportField.TRANSACTION_DATE, ("Data", "Date"), required=True)
_TYPE = FieldSpec(ReportField.RECORD_TYPE, ("Tipo", "Type"), required=True)
_CODE = FieldSpec(ReportField.CONFIRMATION_CODE, ("Código de Confirmação", "Confirmation Code"))
_CHECK_IN = FieldSpec(ReportField.CHECK_IN, ("Data de início", "Start Date"))
_CHECK_OUT = FieldSpec(ReportField.CHECK_OUT, ("Data de término", "End Date"))
_NIGHTS = FieldSpec(ReportField.NIGHTS, ("Noites", "Nights"))
_GUEST = FieldSpec(ReportField.GUEST, ("Hóspede", "Guest"))
_LISTING = FieldSpec(ReportField.LISTING, ("Anúncio", "Listing"), required=True)
_AMOUNT = FieldSpec(ReportField.AMOUNT, ("Valor", "Amount"), required=True)
_CURRENCY = FieldSpec(ReportField.CURRENCY, ("Moeda", "Currency"))
_GROSS = FieldSpec(ReportField.GROSS_EARNINGS, ("Ganhos brutos", "Gross Earnings"))
_PAID = FieldSpec(ReportField.PAID_AMOUNT, ("Pago", "Paid Out"), required=True)


@dataclass(frozen=True)
class ReportLayout:
    """A recognizable export format."""

    kind: LayoutKind
    fields: tuple[FieldSpec, ...]
    excludes: tuple[FieldSpec, ...] = ()

    def resolve_columns(self, header: Sequence[str]) -> dict[ReportField, int] | None:
        """Map each field to its column index, or None if the header does not fit."""
        for field_spec in self.excludes:
            if any(field_spec.matches(h) for h in header):
                return None

        columns: dict[ReportField, int] = {}
        for field_spec in self.fields:
            for index, name in enumerate(header):
                if field_spec.matches(name):
                    columns[field_spec.field] = index
                    break
            else:
                if field_spec.required:
                    return None
        return columns


HISTORICAL_LAYOUT = ReportLayout(
    kind=LayoutKind.HISTORICAL,
    fields=(
        _DATE, _TYPE, _CODE, _CHECK_IN, _CHECK_OUT, _NIGHTS,
        _GUEST, _LISTING, _AMOUNT, _PAID, _CURRENCY, _GROSS,
    ),
)

PENDING_LAYOUT = ReportLayout(
    kind=LayoutKind.PENDING,
    fields=(
        _DATE, _TYPE, _CODE, _CHECK_IN, _CHECK_OUT, _NIGHTS,
        _GUEST, _LISTING, _AMOUNT, _CURRENCY, _GROSS,
    ),
    excludes=(_PAID,),
)

KNOWN_LAYOUTS: tuple[ReportLayout, ...] = (HISTORICAL_LAYOUT, PENDING_LAYOUT)


# Row type labels as exported, normalized with normalize_header
ROW_TYPE_ALIASES: dict[str, RecordType] = {
    normalize_header(label): record_type
    for label, record_type in (
        ("Payout", RecordType.PAYOUT),
        ("Reserva", RecordType.RESERVATION),
        ("Reservation", RecordType.RESERVATION),
        ("Ajuste", RecordType.ADJUSTMENT),
        ("Ajuste de Resolução", RecordType.ADJUSTMENT),
        ("Adjustment", RecordType.ADJUSTMENT),
        ("Resolution Adjustment", RecordType.ADJUSTMENT),
    )
}


def record_type_for(label: str) -> RecordType | None:
    return ROW_TYPE_ALIASES.get(normalize_header(label))


def detect_layout(
    header: Sequence[str],
    layouts: Sequence[ReportLayout] = KNOWN_LAYOUTS,
) -> tuple[ReportLayout, dict[ReportField, int]]:
    """First layout that fits the header, with its column map.

    Raises:
        UnrecognizedLayoutError: if no layout fits.
    """
    for layout in layouts:
        columns = layout.resolve_columns(header)
        if columns is not None:
            return layout, columns
    raise UnrecognizedLayoutError(list(header))
