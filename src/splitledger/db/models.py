from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ExpenseType(str, Enum):
    SHARED = "shared"
    PERSONAL = "personal"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class Group:
    id: str
    name: str


@dataclass(slots=True)
class GroupMember:
    user_id: str
    display_name: str
    photo_url: Optional[str] = None


@dataclass(slots=True)
class Expense:
    id: str
    group_id: Optional[str]
    type: ExpenseType
    user_id: str
    amount_cents: int
    description: str
    paid_by: Optional[str] = None
    split_method: Optional[str] = None
    split_data: Optional[dict[str, int]] = None
    participants: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class Settlement:
    id: str
    group_id: str
    from_user_id: str
    to_user_id: str
    amount_cents: int
    status: SettlementStatus
    created_at: datetime
    created_by: str
    notes: str = ""
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    related_expense_ids: list[str] = field(default_factory=list)
    calculated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == SettlementStatus.PENDING
