"""
Module: portfolio_kernel.db.types
Responsibility: The one rounding function used for currency amounts.
Architecture position: Kernel > DB.  Imported by engines and services.

Invariants enforced:
    - Money is Decimal end to end; stored as Numeric(38, 9).
    - round_money() rounds ROUND_HALF_UP unless the caller asks otherwise.
"""

from decimal import ROUND_HALF_UP, Decimal

CURRENCY_DECIMAL_PLACES = 2


def round_money(
    value: Decimal,
    decimal_places: int = CURRENCY_DECIMAL_PLACES,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """Quantize ``value`` to ``decimal_places``.

    The distributor passes ROUND_DOWN when a residual would flip a share's sign.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)
