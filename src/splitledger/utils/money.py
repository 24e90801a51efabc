from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from fractions import Fraction
from numbers import Rational

from splitledger.errors import InvalidInputError

_AMOUNT_RE = re.compile(r"^[+]?\s*[^\d.,+-]?\s*(\d+(?:[.,]\d{1,2})?)\s*$")


def round_cents(value: Rational | int) -> int:
    """Round an exact amount of cents half-up to a whole cent."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def parse_amount_cents(text: str) -> int:
    """
    Parse a user-entered amount into cents.

    Accepts "12", "12.5", "12,50" and an optional leading currency symbol
    such as "$12.50".
    """
    match = _AMOUNT_RE.match(text.strip())
    if not match:
        raise InvalidInputError(f"Cannot parse amount {text!r}")
    try:
        value = Decimal(match.group(1).replace(",", "."))
    except InvalidOperation as exc:
        raise InvalidInputError(f"Cannot parse amount {text!r}") from exc
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(amount_cents: int, symbol: str = "$") -> str:
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{symbol}{whole:,}.{cents:02d}"
