from fractions import Fraction

import pytest

from splitledger.errors import InvalidInputError
from splitledger.utils.money import format_cents, parse_amount_cents, round_cents


def test_round_cents_half_up():
    assert round_cents(Fraction(2000, 3)) == 667
    assert round_cents(Fraction(-1000, 3)) == -333
    assert round_cents(Fraction(1, 2)) == 1
    assert round_cents(42) == 42


def test_parse_amount_cents():
    assert parse_amount_cents("12") == 1200
    assert parse_amount_cents("$12.50") == 1250
    assert parse_amount_cents("12,5") == 1250


def test_parse_amount_cents_rejects_garbage():
    with pytest.raises(InvalidInputError):
        parse_amount_cents("twelve")
    with pytest.raises(InvalidInputError):
        parse_amount_cents("-5")


def test_format_cents():
    assert format_cents(123456) == "$1,234.56"
    assert format_cents(-5) == "-$0.05"
    assert format_cents(1000, "€") == "€10.00"
