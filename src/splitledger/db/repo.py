from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Mapping, Optional

import asyncpg

from splitledger.db.models import Expense, ExpenseType, Group, GroupMember, Settlement, SettlementStatus
from splitledger.logging import get_logger, sql_logger


class Database:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None
        self._log = get_logger(__name__)

    async def connect(self) -> None:
        if self._pool is None:
            # asyncpg expects a plain postgresql:// scheme, without "+asyncpg"
            dsn = self._dsn.replace("+asyncpg", "")
            self._pool = await asyncpg.create_pool(dsn)
            self._log.info("db.pool.created")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._log.info("db.pool.closed")

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetch", query=query, args=args)
        return await self._pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetchrow", query=query, args=args)
        return await self._pool.fetchrow(query, *args)

    async def _ensure_pool(self) -> None:
        if self._pool is None:
            await self.connect()


def settlement_from_row(row: Mapping[str, Any]) -> Settlement:
    return Settlement(
        id=row["id"],
        group_id=row["group_id"],
        from_user_id=row["from_user_id"],
        to_user_id=row["to_user_id"],
        amount_cents=int(row["amount_cents"]),
        status=SettlementStatus(row["status"]),
        created_at=row["created_at"],
        created_by=row["created_by"],
        notes=row["notes"] or "",
        completed_at=row["completed_at"],
        completed_by=row["completed_by"],
        cancelled_at=row["cancelled_at"],
        cancelled_by=row["cancelled_by"],
        related_expense_ids=list(row["related_expense_ids"] or []),
        calculated_at=row["calculated_at"],
    )


def expense_from_row(row: Mapping[str, Any]) -> Expense:
    share_users = row["share_users"]
    split_data = None
    if share_users:
        split_data = {user_id: int(share) for user_id, share in zip(share_users, row["share_amounts"])}
    return Expense(
        id=row["id"],
        group_id=row["group_id"],
        type=ExpenseType(row["type"]),
        user_id=row["user_id"],
        amount_cents=int(row["amount_cents"]),
        description=row["description"],
        paid_by=row["paid_by"],
        split_method=row["split_method"],
        split_data=split_data,
        participants=list(row["participants"] or []),
        created_at=row["created_at"],
    )


class LedgerRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_group(self, group_id: str) -> Group | None:
        row = await self.db.fetchrow("SELECT id, name FROM groups WHERE id = $1", group_id)
        if row is None:
            return None
        return Group(id=row["id"], name=row["name"])

    async def get_group_members(self, group_id: str) -> list[GroupMember]:
        rows = await self.db.fetch(
            """
            SELECT user_id, display_name, photo_url
            FROM group_members
            WHERE group_id = $1
            ORDER BY joined_at, user_id
            """,
            group_id,
        )
        return [
            GroupMember(user_id=row["user_id"], display_name=row["display_name"], photo_url=row["photo_url"])
            for row in rows
        ]

    async def get_group_expenses(self, group_id: str) -> list[Expense]:
        rows = await self.db.fetch(
            """
            SELECT e.*,
                   array_agg(s.user_id ORDER BY s.position) FILTER (WHERE s.user_id IS NOT NULL) AS share_users,
                   array_agg(s.share_cents ORDER BY s.position) FILTER (WHERE s.user_id IS NOT NULL) AS share_amounts
            FROM expenses e
            LEFT JOIN expense_shares s ON s.expense_id = e.id
            WHERE e.group_id = $1
            GROUP BY e.id
            ORDER BY e.created_at, e.id
            """,
            group_id,
        )
        return [expense_from_row(row) for row in rows]

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
    ) -> Settlement:
        row = await self.db.fetchrow(
            """
            INSERT INTO settlements (
                id, group_id, from_user_id, to_user_id, amount_cents, status,
                created_by, notes, related_expense_ids, calculated_at
            )
            VALUES ($1, $2, $3, $4, $5, 'pending', $6, $7, $8, $9)
            RETURNING *
            """,
            uuid.uuid4().hex,
            group_id,
            from_user_id,
            to_user_id,
            amount_cents,
            created_by,
            notes,
            related_expense_ids,
            calculated_at,
        )
        assert row is not None
        return settlement_from_row(row)

    async def get_settlement(self, settlement_id: str) -> Settlement | None:
        row = await self.db.fetchrow("SELECT * FROM settlements WHERE id = $1", settlement_id)
        return settlement_from_row(row) if row is not None else None

    async def complete_settlement(
        self,
        settlement_id: str,
        completed_by: str,
        completed_at: datetime,
    ) -> Settlement | None:
        """Conditional pending -> completed; returns None if the row was not pending."""
        row = await self.db.fetchrow(
            """
            UPDATE settlements
            SET status = 'completed', completed_at = $2, completed_by = $3
            WHERE id = $1 AND status = 'pending'
            RETURNING *
            """,
            settlement_id,
            completed_at,
            completed_by,
        )
        return settlement_from_row(row) if row is not None else None

    async def cancel_settlement(
        self,
        settlement_id: str,
        cancelled_by: Optional[str],
        cancelled_at: datetime,
        notes: str,
    ) -> Settlement | None:
        """Conditional pending -> cancelled; returns None if the row was not pending."""
        row = await self.db.fetchrow(
            """
            UPDATE settlements
            SET status = 'cancelled', cancelled_at = $2, cancelled_by = $3, notes = $4
            WHERE id = $1 AND status = 'pending'
            RETURNING *
            """,
            settlement_id,
            cancelled_at,
            cancelled_by,
            notes,
        )
        return settlement_from_row(row) if row is not None else None

    async def list_group_settlements(
        self,
        group_id: str,
        status: SettlementStatus | None = None,
    ) -> list[Settlement]:
        if status is None:
            rows = await self.db.fetch(
                "SELECT * FROM settlements WHERE group_id = $1 ORDER BY created_at DESC",
                group_id,
            )
        else:
            rows = await self.db.fetch(
                "SELECT * FROM settlements WHERE group_id = $1 AND status = $2 ORDER BY created_at DESC",
                group_id,
                status.value,
            )
        return [settlement_from_row(row) for row in rows]

    async def list_user_settlements(
        self,
        user_id: str,
        status: SettlementStatus | None = None,
    ) -> list[Settlement]:
        if status is None:
            rows = await self.db.fetch(
                """
                SELECT * FROM settlements
                WHERE from_user_id = $1 OR to_user_id = $1
                ORDER BY created_at DESC
                """,
                user_id,
            )
        else:
            rows = await self.db.fetch(
                """
                SELECT * FROM settlements
                WHERE (from_user_id = $1 OR to_user_id = $1) AND status = $2
                ORDER BY created_at DESC
                """,
                user_id,
                status.value,
            )
        return [settlement_from_row(row) for row in rows]
