from __future__ import annotations

from splitledger.db.models import Settlement
from splitledger.errors import AuthorizationError


def is_settlement_party(settlement: Settlement, user_id: str) -> bool:
    return user_id in (settlement.from_user_id, settlement.to_user_id)


def assert_settlement_party(settlement: Settlement, user_id: str, action: str) -> None:
    if not is_settlement_party(settlement, user_id):
        raise AuthorizationError(f"Only involved parties can {action} settlement {settlement.id}")


def can_complete_settlement(settlement: Settlement, user_id: str) -> bool:
    return settlement.is_pending and is_settlement_party(settlement, user_id)
