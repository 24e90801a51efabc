from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from numbers import Rational
from typing import Iterable, List, Optional, Protocol, Sequence

from splitledger.config import get_settings
from splitledger.utils.money import format_cents, round_cents

EPSILON_CENTS = 1


class BalanceLike(Protocol):
    @property
    def user_id(self) -> str: ...

    @property
    def user_name(self) -> str: ...

    @property
    def net_balance(self) -> Rational: ...


@dataclass(slots=True)
class SettlementAmount:
    from_user: str
    from_name: str
    to_user: str
    to_name: str
    amount_cents: int


@dataclass(slots=True)
class SimplifiedTransaction:
    from_user: str
    from_name: str
    to_user: str
    to_name: str
    amount_cents: int
    status: str = "pending"
    settlement_id: Optional[str] = None


@dataclass(slots=True)
class _Party:
    user_id: str
    user_name: str
    remaining: Fraction


def simplify_debts(balances: Sequence[BalanceLike]) -> List[SettlementAmount]:
    """
    Greedy debt simplification: the largest creditor is paid by the largest
    debtors first, until one side runs out.

    Ties keep input order, so the output is stable for identical input.
    Working amounts live on private copies; ``balances`` is not modified.
    """
    creditors: list[_Party] = []
    debtors: list[_Party] = []

    for balance in balances:
        net = Fraction(balance.net_balance)
        if net > 0:
            creditors.append(_Party(balance.user_id, balance.user_name, net))
        elif net < 0:
            debtors.append(_Party(balance.user_id, balance.user_name, -net))

    creditors.sort(key=lambda p: p.remaining, reverse=True)
    debtors.sort(key=lambda p: p.remaining, reverse=True)

    settlements: list[SettlementAmount] = []
    i, j = 0, 0

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        transfer_amount = min(creditor.remaining, debtor.remaining)
        amount_cents = round_cents(transfer_amount)
        if transfer_amount >= EPSILON_CENTS and amount_cents > 0:
            settlements.append(
                SettlementAmount(
                    from_user=debtor.user_id,
                    from_name=debtor.user_name,
                    to_user=creditor.user_id,
                    to_name=creditor.user_name,
                    amount_cents=amount_cents,
                )
            )

        creditor.remaining -= transfer_amount
        debtor.remaining -= transfer_amount

        if creditor.remaining < EPSILON_CENTS:
            i += 1
        if debtor.remaining < EPSILON_CENTS:
            j += 1

    return settlements


def total_settlement_amount(settlements: Iterable[SettlementAmount | SimplifiedTransaction]) -> int:
    return sum(s.amount_cents for s in settlements)


def settlement_summary_lines(
    settlements: Iterable[SettlementAmount | SimplifiedTransaction],
    currency_symbol: Optional[str] = None,
) -> list[str]:
    symbol = currency_symbol if currency_symbol is not None else get_settings().currency_symbol
    return [f"{s.from_name} pays {s.to_name} {format_cents(s.amount_cents, symbol)}" for s in settlements]
