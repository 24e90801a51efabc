import pytest

from splitledger.errors import InvalidInputError
from splitledger.services.split import (
    SplitMethod,
    resolve_split,
    split_amount,
    split_by_percentage,
    validate_split_data,
)


def test_split_amount_even():
    shares = split_amount(1000, ["a", "b", "c", "d"])
    assert shares == {"a": 250, "b": 250, "c": 250, "d": 250}


def test_split_amount_remainder():
    shares = split_amount(1001, ["a", "b", "c"])
    assert sum(shares.values()) == 1001
    assert sorted(shares.values()) == [333, 334, 334]


def test_split_amount_leftover_cent_goes_to_first_participant():
    assert split_amount(1000, ["a", "b", "c"]) == {"a": 334, "b": 333, "c": 333}


def test_split_amount_rejects_bad_input():
    with pytest.raises(InvalidInputError):
        split_amount(100, [])
    with pytest.raises(InvalidInputError):
        split_amount(-1, ["a"])


def test_split_by_percentage():
    assert split_by_percentage(1000, {"a": 50, "b": 25, "c": 25}) == {"a": 500, "b": 250, "c": 250}


def test_split_by_percentage_assigns_residue():
    shares = split_by_percentage(1000, {"a": 33.33, "b": 33.33, "c": 33.34})
    assert shares == {"a": 334, "b": 333, "c": 333}


def test_split_by_percentage_zero_percent_pays_nothing():
    shares = split_by_percentage(100, {"a": 0, "b": 33.34, "c": 33.33, "d": 33.33})
    assert shares["a"] == 0
    assert sum(shares.values()) == 100


def test_split_by_percentage_never_goes_negative():
    assert split_by_percentage(10000, {"a": 0, "b": 100.01}) == {"a": 0, "b": 10000}


def test_split_by_percentage_must_add_up():
    with pytest.raises(InvalidInputError):
        split_by_percentage(1000, {"a": 50, "b": 40})


def test_resolve_split_equal():
    assert resolve_split(SplitMethod.EQUAL, 900, ["a", "b", "c"]) == {"a": 300, "b": 300, "c": 300}


def test_resolve_split_custom_amounts():
    assert resolve_split("custom", 1000, {"a": 600, "b": 400}) == {"a": 600, "b": 400}
    assert resolve_split("amount", 1000, {"a": 500, "b": 499}) == {"a": 500, "b": 499}


def test_resolve_split_custom_amounts_must_match_total():
    with pytest.raises(InvalidInputError):
        resolve_split("custom", 1000, {"a": 600, "b": 300})


def test_resolve_split_payload_shape():
    with pytest.raises(InvalidInputError):
        resolve_split("percentage", 1000, ["a"])
    with pytest.raises(ValueError):
        resolve_split("thirds", 1000, ["a"])


def test_validate_split_data_allows_one_cent():
    assert validate_split_data(1000, {"a": 333, "b": 333, "c": 333})
    assert not validate_split_data(1000, {"a": 333, "b": 333, "c": 332})
