from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Union

from splitledger.errors import InvalidInputError


class SplitMethod(str, Enum):
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    AMOUNT = "amount"
    CUSTOM = "custom"


SplitPayload = Union[Sequence[str], Mapping[str, Union[int, float, Decimal]]]

PERCENT_TOLERANCE = Decimal("0.01")


def _spread_remainder(shares: list[int], remainder: int, order: Sequence[int] | None = None) -> None:
    """Move ``remainder`` cents one at a time over ``order``; no share drops below zero."""
    positions = list(order) if order is not None else list(range(len(shares)))
    idx = 0
    step = 1 if remainder > 0 else -1
    while remainder != 0:
        position = positions[idx % len(positions)]
        idx += 1
        if step < 0 and shares[position] == 0:
            continue
        shares[position] += step
        remainder -= step


def split_amount(amount_cents: int, participants: Sequence[str]) -> dict[str, int]:
    """Equal split; leftover cents go one at a time to participants in order."""
    if amount_cents < 0:
        raise InvalidInputError("amount_cents must be non-negative")
    if not participants:
        raise InvalidInputError("participants must not be empty")

    n = len(participants)
    base_share = (Decimal(amount_cents) / Decimal(n)).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)

    shares = [int(base_share) for _ in participants]
    _spread_remainder(shares, amount_cents - sum(shares))

    return {participant: share for participant, share in zip(participants, shares)}


def split_by_percentage(amount_cents: int, percentages: Mapping[str, Union[int, float, Decimal]]) -> dict[str, int]:
    if amount_cents < 0:
        raise InvalidInputError("amount_cents must be non-negative")
    if not percentages:
        raise InvalidInputError("percentages must not be empty")

    as_decimal = {user_id: Decimal(str(value)) for user_id, value in percentages.items()}
    if any(value < 0 for value in as_decimal.values()):
        raise InvalidInputError("percentages must be non-negative")
    if abs(sum(as_decimal.values()) - Decimal(100)) > PERCENT_TOLERANCE:
        raise InvalidInputError("percentages must add up to 100")

    shares = [
        int((Decimal(amount_cents) * value / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        for value in as_decimal.values()
    ]
    # residue goes to the largest shares first, never to a 0% participant
    weights = list(as_decimal.values())
    order = sorted((i for i, value in enumerate(weights) if value > 0), key=lambda i: shares[i], reverse=True)
    _spread_remainder(shares, amount_cents - sum(shares), order)

    return {user_id: share for user_id, share in zip(as_decimal, shares)}


def validate_split_data(amount_cents: int, split_data: Mapping[str, int]) -> bool:
    # one cent of slack for upstream rounding
    return abs(sum(split_data.values()) - amount_cents) <= 1


def resolve_split(method: SplitMethod | str, amount_cents: int, payload: SplitPayload) -> dict[str, int]:
    """
    Resolve a split rule to a flat ``{user_id: share_cents}`` mapping.

    ``payload`` is the participant list for equal splits, a ``{user_id: percent}``
    mapping for percentage splits and a ``{user_id: cents}`` mapping for amount
    and custom splits.
    """
    method = SplitMethod(method)

    if method == SplitMethod.EQUAL:
        if isinstance(payload, Mapping):
            payload = list(payload)
        return split_amount(amount_cents, payload)

    if not isinstance(payload, Mapping):
        raise InvalidInputError(f"{method.value} split expects a mapping of user id to value")

    if method == SplitMethod.PERCENTAGE:
        return split_by_percentage(amount_cents, payload)

    shares: dict[str, int] = {}
    for user_id, value in payload.items():
        if int(value) != value or value < 0:
            raise InvalidInputError(f"share for {user_id!r} must be a non-negative whole number of cents")
        shares[user_id] = int(value)
    if not shares:
        raise InvalidInputError("split must name at least one participant")
    if not validate_split_data(amount_cents, shares):
        raise InvalidInputError(
            f"shares add up to {sum(shares.values())} cents, expected {amount_cents}"
        )
    return shares
