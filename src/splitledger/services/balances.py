from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Iterable, List, Mapping, Optional, Sequence

from splitledger.db.models import Expense, ExpenseType, GroupMember
from splitledger.errors import UnknownParticipantWarning
from splitledger.logging import get_logger
from splitledger.utils.money import round_cents

log = get_logger(__name__)


@dataclass(slots=True)
class ExpenseRecord:
    paid_by: str
    amount_cents: int
    split_between: Optional[Sequence[str]] = None


@dataclass(slots=True)
class PersonBalance:
    """
    Totals for one person over a set of expenses.

    ``total_owed`` and ``net_balance`` are exact fractions of a cent: equal
    shares are not rounded per expense, only when a settlement is emitted.
    """

    user_id: str
    user_name: str
    total_paid: int = 0
    total_owed: Fraction = field(default_factory=Fraction)
    net_balance: Fraction = field(default_factory=Fraction)

    @property
    def net_balance_cents(self) -> int:
        return round_cents(self.net_balance)


@dataclass(slots=True)
class BalanceDetail:
    user_id: str
    user_name: str
    user_photo: Optional[str]
    amount_cents: int


@dataclass(slots=True)
class GroupBalance:
    user_id: str
    user_name: str
    user_photo: Optional[str]
    net_balance: int
    owed_to: List[BalanceDetail] = field(default_factory=list)
    owes: List[BalanceDetail] = field(default_factory=list)


def find_unknown_participants(
    expenses: Iterable[ExpenseRecord],
    user_names: Mapping[str, str],
) -> list[UnknownParticipantWarning]:
    problems: list[UnknownParticipantWarning] = []
    for expense in expenses:
        if expense.paid_by not in user_names:
            problems.append(UnknownParticipantWarning(expense.paid_by, "payer"))
        for user_id in expense.split_between or ():
            if user_id not in user_names:
                problems.append(UnknownParticipantWarning(user_id, "participant"))
    return problems


def _drop_unknown(user_id: str, role: str) -> None:
    log.warning("balances.unknown_participant", user_id=user_id, role=role)
    warnings.warn(UnknownParticipantWarning(user_id, role), stacklevel=3)


def calculate_person_balances(
    expenses: Sequence[ExpenseRecord],
    user_names: Mapping[str, str],
) -> list[PersonBalance]:
    balances = {user_id: PersonBalance(user_id=user_id, user_name=name) for user_id, name in user_names.items()}

    for expense in expenses:
        if expense.amount_cents == 0:
            continue

        payer = balances.get(expense.paid_by)
        if payer is not None:
            payer.total_paid += expense.amount_cents
        else:
            _drop_unknown(expense.paid_by, "payer")

        if expense.split_between:
            share = Fraction(expense.amount_cents, len(expense.split_between))
            for user_id in expense.split_between:
                person = balances.get(user_id)
                if person is not None:
                    person.total_owed += share
                else:
                    _drop_unknown(user_id, "participant")
        elif payer is not None:
            # no recorded split: the payer carries the whole expense
            payer.total_owed += expense.amount_cents

    for balance in balances.values():
        balance.net_balance = balance.total_paid - balance.total_owed

    return list(balances.values())


def is_fully_settled(balances: Iterable[PersonBalance | GroupBalance]) -> bool:
    return all(abs(balance.net_balance) < 1 for balance in balances)


def _counts_toward_balance(expense: Expense) -> bool:
    return expense.type == ExpenseType.SHARED and bool(expense.split_data) and bool(expense.paid_by)


def calculate_group_balances(
    members: Sequence[GroupMember],
    expenses: Sequence[Expense],
    tolerance_cents: int = 1,
    group_id: str | None = None,
) -> list[GroupBalance]:
    """
    Balances for a group from explicit per-participant shares.

    Personal expenses and expenses without a payer or split are skipped.
    Each member also gets a pairwise breakdown of who owes them and whom
    they owe, counted over the expenses directly between the two of them.
    """
    net: dict[str, int] = {member.user_id: 0 for member in members}
    counted = [expense for expense in expenses if _counts_toward_balance(expense)]

    for expense in counted:
        payer = expense.paid_by or ""
        net[payer] = net.get(payer, 0) + expense.amount_cents
        for user_id, share in (expense.split_data or {}).items():
            net[user_id] = net.get(user_id, 0) - share

    total = sum(net.values())
    tolerance = len(members) * tolerance_cents
    if abs(total) > tolerance:
        log.error(
            "balances.integrity_failed",
            group_id=group_id,
            total=total,
            tolerance=tolerance,
            balances=net,
        )

    balances: list[GroupBalance] = []
    for member in members:
        balance = GroupBalance(
            user_id=member.user_id,
            user_name=member.display_name,
            user_photo=member.photo_url,
            net_balance=net[member.user_id],
        )
        for other in members:
            if other.user_id == member.user_id:
                continue
            pairwise = _pairwise_balance(counted, member.user_id, other.user_id)
            if pairwise > 0:
                balance.owed_to.append(
                    BalanceDetail(other.user_id, other.display_name, other.photo_url, pairwise)
                )
            elif pairwise < 0:
                balance.owes.append(
                    BalanceDetail(other.user_id, other.display_name, other.photo_url, -pairwise)
                )
        balances.append(balance)

    return balances


def _pairwise_balance(expenses: Iterable[Expense], user_id: str, other_id: str) -> int:
    """Positive when ``other_id`` owes ``user_id``."""
    amount = 0
    for expense in expenses:
        split = expense.split_data or {}
        if expense.paid_by == other_id:
            amount -= split.get(user_id, 0)
        if expense.paid_by == user_id:
            amount += split.get(other_id, 0)
    return amount
