"""
Amount parsing -- locale-formatted monetary text to Decimal.

Responsibility:
    Normalize amounts as they appear in platform exports ("R$ 1.234,56",
    "1,234.56", "(12.50)", "-300") into exact Decimal values.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Rules:
    - Currency symbols, ISO codes and all whitespace (incl. NBSP) are dropped.
    - A leading ``-`` or surrounding parentheses make the value negative.
    - With both ``,`` and ``.`` present, the right-most one is the decimal
      separator and the other is grouping.
    - With one kind present: several occurrences are grouping; a single
      occurrence is the decimal separator.
    - Floats are never produced.

Failure modes:
    - AmountParseError on empty or unparseable text (parse_amount).
      parse_optional_amount returns None for blank text instead.
"""

import re
from decimal import Decimal, InvalidOperation

from portfolio_kernel.exceptions import AmountParseError

_CURRENCY_MARKS = re.compile(r"R\$|US\$|[$€£¥]|\b[A-Z]{3}\b")
_WHITESPACE = re.compile(r"\s+")
_NUMERIC_BODY = re.compile(r"[0-9.,]+")


def _split_decimal(body: str) -> tuple[str, str]:
    comma = body.rfind(",")
    dot = body.rfind(".")

    if comma >= 0 and dot >= 0:
        sep, grouping = (",", ".") if comma > dot else (".", ",")
        integer, _, fraction = body.rpartition(sep)
        if sep in integer:
            raise ValueError("decimal separator repeated")
        return integer.replace(grouping, ""), fraction

    for sep in (",", "."):
        count = body.count(sep)
        if count > 1:
            return body.replace(sep, ""), ""
        if count == 1:
            integer, _, fraction = body.partition(sep)
            return integer, fraction

    return body, ""


def parse_amount(text: str | None) -> Decimal:
    """Parse locale-formatted monetary text into a Decimal.

    Raises:
        AmountParseError: on empty or unparseable input.
    """
    if text is None or not str(text).strip():
        raise AmountParseError(text, "empty value")

    cleaned = _CURRENCY_MARKS.sub("", str(text))
    cleaned = _WHITESPACE.sub("", cleaned)

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]
    if cleaned.startswith("-"):
        negative = not negative
        cleaned = cleaned[1:]
    elif cleaned.startswith("+"):
        cleaned = cleaned[1:]

    if not cleaned or not _NUMERIC_BODY.fullmatch(cleaned):
        raise AmountParseError(text, "not a number")

    try:
        integer, fraction = _split_decimal(cleaned)
    except ValueError as exc:
        raise AmountParseError(text, str(exc)) from exc

    if not integer and not fraction:
        raise AmountParseError(text, "no digits")

    literal = f"{integer or '0'}.{fraction}" if fraction else integer
    try:
        value = Decimal(literal)
    except InvalidOperation as exc:
        raise AmountParseError(text, "not a number") from exc

    return -value if negative else value


def parse_optional_amount(text: str | None) -> Decimal | None:
    """Like parse_amount, but blank text yields None."""
    if text is None or not str(text).strip():
        return None
    return parse_amount(text)
