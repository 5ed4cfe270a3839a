"""Tests for engine input fingerprinting."""

from datetime import date
from decimal import Decimal

from portfolio_engines.distribution import DistributionWeight
from portfolio_engines.tracer import compute_input_fingerprint


class TestFingerprint:
    def test_deterministic(self):
        kwargs = {"total": Decimal("10"), "weights": [DistributionWeight("a", Decimal("1"))]}
        first = compute_input_fingerprint(("total", "weights"), kwargs)
        second = compute_input_fingerprint(("total", "weights"), dict(kwargs))
        assert first == second
        assert len(first) == 16

    def test_decimal_scale_does_not_matter(self):
        assert compute_input_fingerprint(
            ("total",), {"total": Decimal("10.00")}
        ) == compute_input_fingerprint(("total",), {"total": Decimal("10")})

    def test_dict_order_does_not_matter(self):
        one = {date(2024, 1, 2): Decimal("1"), date(2024, 1, 1): Decimal("2")}
        two = {date(2024, 1, 1): Decimal("2"), date(2024, 1, 2): Decimal("1")}
        assert compute_input_fingerprint(("x",), {"x": one}) == compute_input_fingerprint(
            ("x",), {"x": two}
        )

    def test_missing_field_recorded_as_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )
