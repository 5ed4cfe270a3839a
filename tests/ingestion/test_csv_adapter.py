"""Tests for CsvReportAdapter decoding and row splitting."""

from pathlib import Path

import pytest

from portfolio_ingestion.adapters.csv_adapter import CsvReportAdapter
from portfolio_kernel.exceptions import UndecodableReportError


class TestDecode:
    def setup_method(self):
        self.adapter = CsvReportAdapter()

    def test_bom_stripped_from_bytes(self):
        assert self.adapter.decode("\ufeffData,Tipo".encode("utf-8")) == "Data,Tipo"

    def test_bom_stripped_from_text(self):
        assert self.adapter.decode("\ufeffData") == "Data"

    def test_invalid_utf8_rejected(self):
        with pytest.raises(UndecodableReportError) as exc_info:
            self.adapter.decode(b"Data,Tipo\n\xff\xfe")
        assert exc_info.value.code == "UNDECODABLE_REPORT"

    def test_path(self, tmp_path: Path):
        path = tmp_path / "report.csv"
        path.write_bytes("Data,Anúncio\n".encode("utf-8"))
        assert self.adapter.decode(path) == "Data,Anúncio\n"


class TestRows:
    def setup_method(self):
        self.adapter = CsvReportAdapter()

    def test_quoted_delimiter_and_newline(self):
        text = 'a,b\n"Loft, Centro","line one\nline two"\n'
        rows = list(self.adapter.rows(text))
        assert rows == [["a", "b"], ["Loft, Centro", "line one\nline two"]]

    def test_crlf_and_blank_lines(self):
        text = "a,b\r\n\r\n1,2\r\n  ,  \r\n"
        assert list(self.adapter.rows(text)) == [["a", "b"], ["1", "2"]]

    def test_semicolon_sniffed(self):
        text = "a;b\n1,5;2\n"
        assert list(self.adapter.rows(text)) == [["a", "b"], ["1,5", "2"]]

    def test_explicit_delimiter(self):
        assert self.adapter.delimiter_for("a;b,c,d", {"delimiter": ";"}) == ";"


class TestProbe:
    def test_probe_counts_and_samples(self):
        text = "Data,Tipo\n01/02/2024,Payout\n01/03/2024,Reserva\n"
        probe = CsvReportAdapter().probe(text)
        assert probe.columns == ("Data", "Tipo")
        assert probe.row_count == 2
        assert probe.sample_rows[0] == {"Data": "01/02/2024", "Tipo": "Payout"}
        assert probe.detected_delimiter == ","
