from fractions import Fraction

import pytest
from structlog.testing import capture_logs

from splitledger.db.models import Expense, ExpenseType, GroupMember
from splitledger.errors import UnknownParticipantWarning
from splitledger.services.balances import (
    ExpenseRecord,
    calculate_group_balances,
    calculate_person_balances,
    find_unknown_participants,
    is_fully_settled,
)

NAMES = {"alice": "Alice", "bob": "Bob", "carol": "Carol"}
MEMBERS = [GroupMember("alice", "Alice"), GroupMember("bob", "Bob"), GroupMember("carol", "Carol", "https://img/c.png")]


def _by_id(balances):
    return {b.user_id: b for b in balances}


def test_three_way_equal_split():
    balances = _by_id(calculate_person_balances([ExpenseRecord("alice", 3000, ["alice", "bob", "carol"])], NAMES))

    assert all(b.total_owed == 1000 for b in balances.values())
    assert balances["alice"].total_paid == 3000
    assert balances["alice"].net_balance == 2000
    assert balances["bob"].net_balance == -1000
    assert balances["carol"].net_balance == -1000


def test_two_expenses_between_two_people():
    expenses = [
        ExpenseRecord("alice", 10000, ["alice", "bob"]),
        ExpenseRecord("bob", 4000, ["alice", "bob"]),
    ]
    balances = _by_id(calculate_person_balances(expenses, NAMES))

    assert balances["alice"].total_paid == 10000
    assert balances["alice"].total_owed == 7000
    assert balances["alice"].net_balance == 3000
    assert balances["bob"].net_balance == -3000
    assert balances["carol"].net_balance == 0


def test_expense_without_split_is_carried_by_payer():
    balances = _by_id(calculate_person_balances([ExpenseRecord("alice", 500)], NAMES))

    assert balances["alice"].total_paid == 500
    assert balances["alice"].total_owed == 500
    assert balances["alice"].net_balance == 0


def test_empty_and_zero_expenses_leave_everyone_at_zero():
    for expenses in ([], [ExpenseRecord("alice", 0, ["alice", "bob"])]):
        balances = calculate_person_balances(expenses, NAMES)
        assert [b.user_id for b in balances] == ["alice", "bob", "carol"]
        assert all(b.total_paid == 0 and b.total_owed == 0 and b.net_balance == 0 for b in balances)
        assert is_fully_settled(balances)


def test_uneven_split_keeps_exact_shares():
    balances = _by_id(calculate_person_balances([ExpenseRecord("alice", 1000, ["alice", "bob", "carol"])], NAMES))

    assert balances["bob"].total_owed == Fraction(1000, 3)
    assert sum(b.net_balance for b in balances.values()) == 0
    cents = [b.net_balance_cents for b in balances.values()]
    assert cents == [667, -333, -333]
    assert abs(sum(cents)) <= 1


def test_net_balances_sum_to_zero():
    expenses = [
        ExpenseRecord("alice", 1234, ["alice", "bob", "carol"]),
        ExpenseRecord("bob", 999, ["carol"]),
        ExpenseRecord("carol", 701, ["alice", "bob"]),
        ExpenseRecord("bob", 50),
    ]
    balances = calculate_person_balances(expenses, NAMES)
    assert sum(b.net_balance for b in balances) == 0


def test_aggregation_is_repeatable():
    expenses = [ExpenseRecord("alice", 1000, ["alice", "bob", "carol"]), ExpenseRecord("carol", 250, ["bob"])]
    assert calculate_person_balances(expenses, NAMES) == calculate_person_balances(expenses, NAMES)


def test_unknown_participant_contribution_is_dropped():
    names = {"alice": "Alice", "bob": "Bob"}
    expenses = [ExpenseRecord("alice", 3000, ["alice", "bob", "zed"])]

    with pytest.warns(UnknownParticipantWarning):
        balances = _by_id(calculate_person_balances(expenses, names))

    assert balances["alice"].net_balance == 2000
    assert balances["bob"].net_balance == -1000
    # zed's share is lost, so this set no longer nets to zero
    assert sum(b.net_balance for b in balances.values()) == 1000

    problems = find_unknown_participants(expenses, names)
    assert [(p.user_id, p.role) for p in problems] == [("zed", "participant")]


def test_unknown_payer_is_dropped():
    with pytest.warns(UnknownParticipantWarning):
        balances = _by_id(calculate_person_balances([ExpenseRecord("zed", 600, ["alice", "bob"])], NAMES))
    assert balances["alice"].net_balance == -300
    assert balances["bob"].net_balance == -300


def _expense(expense_id, paid_by, amount, split, type=ExpenseType.SHARED):
    return Expense(
        id=expense_id,
        group_id="g1",
        type=type,
        user_id=paid_by or "alice",
        amount_cents=amount,
        description=expense_id,
        paid_by=paid_by,
        split_data=split,
    )


GROUP_EXPENSES = [
    _expense("e1", "alice", 3000, {"alice": 1000, "bob": 1000, "carol": 1000}),
    _expense("e2", "bob", 600, {"alice": 300, "bob": 300}),
    _expense("e3", "alice", 999, {"alice": 999}, type=ExpenseType.PERSONAL),
    _expense("e4", "alice", 500, None),
]


def test_group_balances_use_explicit_shares():
    balances = _by_id(calculate_group_balances(MEMBERS, GROUP_EXPENSES))

    assert balances["alice"].net_balance == 1700
    assert balances["bob"].net_balance == -700
    assert balances["carol"].net_balance == -1000
    assert balances["carol"].user_photo == "https://img/c.png"


def test_group_balances_pairwise_details():
    balances = _by_id(calculate_group_balances(MEMBERS, GROUP_EXPENSES))

    alice = balances["alice"]
    assert [(d.user_id, d.amount_cents) for d in alice.owed_to] == [("bob", 700), ("carol", 1000)]
    assert alice.owes == []

    assert [(d.user_id, d.amount_cents) for d in balances["bob"].owes] == [("alice", 700)]
    assert [(d.user_id, d.amount_cents) for d in balances["carol"].owes] == [("alice", 1000)]


def test_group_balances_only_report_members():
    expenses = [_expense("e1", "alice", 900, {"alice": 300, "bob": 300, "dave": 300})]
    with capture_logs():
        balances = calculate_group_balances(MEMBERS, expenses)
    assert [b.user_id for b in balances] == ["alice", "bob", "carol"]


def test_group_balances_log_integrity_failure():
    expenses = [_expense("e1", "alice", 1000, {"bob": 500})]

    with capture_logs() as logs:
        balances = calculate_group_balances(MEMBERS, expenses, group_id="g1")

    assert _by_id(balances)["alice"].net_balance == 1000
    failures = [entry for entry in logs if entry["event"] == "balances.integrity_failed"]
    assert failures and failures[0]["log_level"] == "error"
    assert failures[0]["total"] == 500
