from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, Optional, Protocol

from splitledger.config import Settings, get_settings
from splitledger.db.models import Expense, ExpenseType, Group, GroupMember, Settlement, SettlementStatus
from splitledger.errors import ConflictError, InvalidInputError, InvalidStateTransitionError, NotFoundError
from splitledger.logging import get_logger
from splitledger.services.authz import assert_settlement_party, can_complete_settlement
from splitledger.services.balances import GroupBalance, calculate_group_balances
from splitledger.services.settlement import SimplifiedTransaction, simplify_debts


class LedgerStore(Protocol):
    async def get_group(self, group_id: str) -> Group | None: ...

    async def get_group_members(self, group_id: str) -> list[GroupMember]: ...

    async def get_group_expenses(self, group_id: str) -> list[Expense]: ...

    async def create_settlement(
        self,
        group_id: str,
        from_user_id: str,
        to_user_id: str,
        amount_cents: int,
        created_by: str,
        notes: str,
        related_expense_ids: list[str],
        calculated_at: datetime,
    ) -> Settlement: ...

    async def get_settlement(self, settlement_id: str) -> Settlement | None: ...

    async def complete_settlement(
        self, settlement_id: str, completed_by: str, completed_at: datetime
    ) -> Settlement | None: ...

    async def cancel_settlement(
        self, settlement_id: str, cancelled_by: Optional[str], cancelled_at: datetime, notes: str
    ) -> Settlement | None: ...

    async def list_group_settlements(
        self, group_id: str, status: SettlementStatus | None = None
    ) -> list[Settlement]: ...

    async def list_user_settlements(
        self, user_id: str, status: SettlementStatus | None = None
    ) -> list[Settlement]: ...


@dataclass(slots=True)
class StatusTotals:
    count: int = 0
    amount_cents: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def settlement_as_expense(settlement: Settlement) -> Expense:
    """A completed settlement as the expense that offsets the debt it paid."""
    return Expense(
        id=f"settlement:{settlement.id}",
        group_id=settlement.group_id,
        type=ExpenseType.SHARED,
        user_id=settlement.from_user_id,
        amount_cents=settlement.amount_cents,
        description="Settlement payment",
        paid_by=settlement.from_user_id,
        split_method="custom",
        split_data={settlement.to_user_id: settlement.amount_cents},
        participants=[settlement.from_user_id, settlement.to_user_id],
        created_at=settlement.completed_at,
    )


def summarize_settlements(settlements: Iterable[Settlement]) -> dict[SettlementStatus, StatusTotals]:
    totals = {status: StatusTotals() for status in SettlementStatus}
    for settlement in settlements:
        entry = totals[settlement.status]
        entry.count += 1
        entry.amount_cents += settlement.amount_cents
    return totals


def _require(value: str, name: str) -> None:
    if not value or not value.strip():
        raise InvalidInputError(f"{name} must not be empty")


class SettlementLedger:
    """
    Records which simplified transfers were actually paid.

    Status moves ``pending -> completed`` or ``pending -> cancelled`` and never
    leaves a terminal state. Each move is a conditional write on the current
    status; a lost race reloads the row and retries once.
    """

    def __init__(
        self,
        repo: LedgerStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repo = repo
        self.settings = settings or get_settings()
        self._clock = clock
        self._log = get_logger(__name__)

    async def create(
        self,
        group_id: str,
        from_user_id: str,
        to_user_id: str,
        amount_cents: int,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> str:
        _require(group_id, "group_id")
        _require(from_user_id, "from_user_id")
        _require(to_user_id, "to_user_id")
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
            raise InvalidInputError("Settlement amount must be a positive number of cents")
        if from_user_id == to_user_id:
            raise InvalidInputError("Cannot create settlement with yourself")

        await self._get_group(group_id)
        members = await self.repo.get_group_members(group_id)
        member_ids = {member.user_id for member in members}
        if from_user_id not in member_ids:
            raise InvalidInputError("Payer must be a group member")
        if to_user_id not in member_ids:
            raise InvalidInputError("Recipient must be a group member")

        expenses = await self.repo.get_group_expenses(group_id)
        balances = await self._balances(group_id, members, expenses, net_completed=True)
        owed = _owed_amount(balances, from_user_id, to_user_id)
        limit = owed * (1 + Decimal(str(self.settings.overpayment_buffer)))
        if owed > 0 and amount_cents > limit:
            raise InvalidInputError(
                f"Settlement amount ({amount_cents}) exceeds calculated debt ({owed}) for this pair"
            )

        settlement = await self.repo.create_settlement(
            group_id=group_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount_cents=amount_cents,
            created_by=created_by or from_user_id,
            notes=notes or "",
            related_expense_ids=[expense.id for expense in expenses],
            calculated_at=self._clock(),
        )
        self._log.info(
            "ledger.created",
            settlement_id=settlement.id,
            group_id=group_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount_cents=amount_cents,
        )
        return settlement.id

    async def get(self, settlement_id: str) -> Settlement:
        _require(settlement_id, "settlement_id")
        settlement = await self.repo.get_settlement(settlement_id)
        if settlement is None:
            raise NotFoundError(f"Settlement {settlement_id} not found")
        return settlement

    async def complete(self, settlement_id: str, completed_by: str) -> Settlement:
        _require(completed_by, "completed_by")
        settlement = await self.get(settlement_id)
        assert_settlement_party(settlement, completed_by, "complete")

        def apply(_: Settlement) -> Awaitable[Settlement | None]:
            return self.repo.complete_settlement(settlement_id, completed_by, self._clock())

        return await self._transition(settlement, SettlementStatus.COMPLETED, apply)

    async def cancel(
        self,
        settlement_id: str,
        cancelled_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Settlement:
        settlement = await self.get(settlement_id)
        if cancelled_by is not None:
            assert_settlement_party(settlement, cancelled_by, "cancel")

        def apply(current: Settlement) -> Awaitable[Settlement | None]:
            notes = current.notes
            if reason:
                notes = f"{notes} | Cancelled: {reason}" if notes else f"Cancelled: {reason}"
            return self.repo.cancel_settlement(settlement_id, cancelled_by, self._clock(), notes)

        return await self._transition(settlement, SettlementStatus.CANCELLED, apply)

    async def _transition(
        self,
        settlement: Settlement,
        target: SettlementStatus,
        apply: Callable[[Settlement], Awaitable[Settlement | None]],
    ) -> Settlement:
        current = settlement
        for attempt in range(2):
            if not current.is_pending:
                raise InvalidStateTransitionError(current.id, current.status.value, target.value)
            updated = await apply(current)
            if updated is not None:
                self._log.info(f"ledger.{target.value}", settlement_id=updated.id, attempt=attempt)
                return updated
            self._log.warning("ledger.conflict", settlement_id=current.id, target=target.value, attempt=attempt)
            current = await self.get(current.id)

        if not current.is_pending:
            raise InvalidStateTransitionError(current.id, current.status.value, target.value)
        raise ConflictError(f"Settlement {current.id} changed concurrently, {target.value} not applied")

    async def list_group(self, group_id: str, status: SettlementStatus | str | None = None) -> list[Settlement]:
        _require(group_id, "group_id")
        return await self.repo.list_group_settlements(group_id, _status(status))

    async def list_for_user(self, user_id: str, status: SettlementStatus | str | None = None) -> list[Settlement]:
        _require(user_id, "user_id")
        rows = await self.repo.list_user_settlements(user_id, _status(status))
        unique = {settlement.id: settlement for settlement in rows}
        return sorted(unique.values(), key=lambda s: s.created_at, reverse=True)

    async def history(
        self,
        group_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Settlement]:
        settlements = await self.list_group(group_id)
        if start is not None:
            settlements = [s for s in settlements if s.created_at >= start]
        if end is not None:
            settlements = [s for s in settlements if s.created_at <= end]
        return settlements

    async def summary(self, group_id: str) -> dict[SettlementStatus, StatusTotals]:
        return summarize_settlements(await self.list_group(group_id))

    def can_complete(self, settlement: Settlement, user_id: str) -> bool:
        return can_complete_settlement(settlement, user_id)

    async def group_balances(self, group_id: str, net_completed: bool = True) -> list[GroupBalance]:
        """
        Recompute member balances from the group's expenses.

        With ``net_completed`` each completed settlement counts as an expense
        paid by the debtor on behalf of the creditor, so paid debts drop out.
        Without it the balances reflect expenses only.
        """
        _require(group_id, "group_id")
        await self._get_group(group_id)
        members = await self.repo.get_group_members(group_id)
        expenses = await self.repo.get_group_expenses(group_id)
        return await self._balances(group_id, members, expenses, net_completed)

    async def simplified_transactions(
        self,
        group_id: str,
        net_completed: bool = True,
    ) -> list[SimplifiedTransaction]:
        balances = await self.group_balances(group_id, net_completed)
        transfers = simplify_debts(balances)

        pending: dict[tuple[str, str], Settlement] = {}
        completed: dict[tuple[str, str], Settlement] = {}
        for settlement in await self.repo.list_group_settlements(group_id):
            pair = (settlement.from_user_id, settlement.to_user_id)
            if settlement.status == SettlementStatus.PENDING:
                pending.setdefault(pair, settlement)
            elif settlement.status == SettlementStatus.COMPLETED:
                completed.setdefault(pair, settlement)

        transactions: list[SimplifiedTransaction] = []
        for transfer in transfers:
            pair = (transfer.from_user, transfer.to_user)
            tx = SimplifiedTransaction(
                from_user=transfer.from_user,
                from_name=transfer.from_name,
                to_user=transfer.to_user,
                to_name=transfer.to_name,
                amount_cents=transfer.amount_cents,
            )
            done = completed.get(pair)
            if not net_completed and done is not None and done.amount_cents == transfer.amount_cents:
                tx.status = SettlementStatus.COMPLETED.value
                tx.settlement_id = done.id
            elif pair in pending:
                tx.settlement_id = pending[pair].id
            transactions.append(tx)
        return transactions

    async def _get_group(self, group_id: str) -> Group:
        group = await self.repo.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    async def _balances(
        self,
        group_id: str,
        members: list[GroupMember],
        expenses: list[Expense],
        net_completed: bool,
    ) -> list[GroupBalance]:
        if net_completed:
            done = await self.repo.list_group_settlements(group_id, SettlementStatus.COMPLETED)
            expenses = expenses + [settlement_as_expense(settlement) for settlement in done]
        return calculate_group_balances(
            members,
            expenses,
            tolerance_cents=self.settings.balance_tolerance_cents,
            group_id=group_id,
        )


def _status(status: SettlementStatus | str | None) -> SettlementStatus | None:
    if status is None:
        return None
    try:
        return SettlementStatus(status)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown settlement status {status!r}") from exc


def _owed_amount(balances: list[GroupBalance], from_user_id: str, to_user_id: str) -> int:
    for balance in balances:
        if balance.user_id != from_user_id:
            continue
        for detail in balance.owes:
            if detail.user_id == to_user_id:
                return detail.amount_cents
    return 0
