"""Tests for declarative layout detection and row type aliases."""

import pytest

from portfolio_ingestion.domain.layouts import (
    HISTORICAL_LAYOUT,
    PENDING_LAYOUT,
    detect_layout,
    normalize_header,
    record_type_for,
)
from portfolio_ingestion.domain.types import LayoutKind, ReportField
from portfolio_kernel.domain.dtos import RecordType
from portfolio_kernel.exceptions import UnrecognizedLayoutError
from tests.reports import HISTORICAL_HEADER, PENDING_HEADER


class TestNormalizeHeader:
    def test_accents_case_and_spacing(self):
        assert normalize_header("  Código de   Confirmação ") == "codigo de confirmacao"


class TestDetectLayout:
    def test_historical_has_paid_column(self):
        layout, columns = detect_layout(HISTORICAL_HEADER.split(","))
        assert layout is HISTORICAL_LAYOUT
        assert layout.kind == LayoutKind.HISTORICAL
        assert columns[ReportField.PAID_AMOUNT] == 12
        assert columns[ReportField.LISTING] == 7

    def test_pending_without_paid_column(self):
        layout, columns = detect_layout(PENDING_HEADER.split(","))
        assert layout is PENDING_LAYOUT
        assert ReportField.PAID_AMOUNT not in columns
        assert columns[ReportField.GROSS_EARNINGS] == 12

    def test_english_headers(self):
        header = ["Date", "Type", "Listing", "Amount", "Paid Out", "Currency"]
        layout, columns = detect_layout(header)
        assert layout.kind == LayoutKind.HISTORICAL
        assert columns[ReportField.CURRENCY] == 5

    def test_columns_found_by_name_not_position(self):
        header = ["Pago", "Valor", "Anúncio", "Tipo", "Data"]
        _, columns = detect_layout(header)
        assert columns[ReportField.TRANSACTION_DATE] == 4
        assert columns[ReportField.PAID_AMOUNT] == 0

    def test_unknown_header_rejected(self):
        with pytest.raises(UnrecognizedLayoutError) as exc_info:
            detect_layout(["foo", "bar"])
        assert exc_info.value.code == "UNRECOGNIZED_LAYOUT"


class TestRecordTypes:
    @pytest.mark.parametrize(
        "label, expected",
        [
            ("Payout", RecordType.PAYOUT),
            ("Reserva", RecordType.RESERVATION),
            ("reservation", RecordType.RESERVATION),
            ("Ajuste de Resolução", RecordType.ADJUSTMENT),
            ("Resolution Adjustment", RecordType.ADJUSTMENT),
        ],
    )
    def test_known(self, label, expected):
        assert record_type_for(label) == expected

    def test_unknown(self):
        assert record_type_for("Imposto") is None
