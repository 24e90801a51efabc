"""Error taxonomy shared by the settlement engine and the ledger."""

from __future__ import annotations


class SplitLedgerError(Exception):
    pass


class InvalidInputError(SplitLedgerError, ValueError):
    """Rejected before any write: bad amount, empty id, malformed split."""


class NotFoundError(SplitLedgerError, LookupError):
    pass


class InvalidStateTransitionError(SplitLedgerError):
    def __init__(self, settlement_id: str, current: str, target: str) -> None:
        super().__init__(f"Settlement {settlement_id} is {current}, cannot move to {target}")
        self.settlement_id = settlement_id
        self.current = current
        self.target = target


class ConflictError(SplitLedgerError):
    """A conditional update lost its precondition to a concurrent writer."""


class AuthorizationError(SplitLedgerError, PermissionError):
    pass


class UnknownParticipantWarning(UserWarning):
    def __init__(self, user_id: str, role: str) -> None:
        super().__init__(f"Unknown {role} {user_id!r}: contribution dropped")
        self.user_id = user_id
        self.role = role
