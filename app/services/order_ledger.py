# app/services/order_ledger.py
"""
Idempotency ledger for marketplace order lines.

A row in marketplace_orders_processed means the line has been applied to
inventory (or deliberately skipped because its SKU is not mapped). The
unique key (provider, account, order, line) is the at-most-once guarantee.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.marketplace import MarketplaceAccount, utc_now
from app.models.processed_order import ProcessedOrderLine

logger = logging.getLogger(__name__)

LEDGER_KEY_COLUMNS = ["provider", "marketplace_account_id", "remote_order_id", "remote_line_id"]

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class OrderLedger:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def already_processed(self, account: MarketplaceAccount, remote_order_id: str, remote_line_id: str) -> bool:
        stmt = select(ProcessedOrderLine.id).where(
            ProcessedOrderLine.provider == account.provider,
            ProcessedOrderLine.marketplace_account_id == account.id,
            ProcessedOrderLine.remote_order_id == remote_order_id,
            ProcessedOrderLine.remote_line_id == remote_line_id,
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def record(
        self,
        account: MarketplaceAccount,
        remote_order_id: str,
        remote_line_id: str,
        product_id: Optional[int],
        quantity: int,
    ) -> bool:
        """
        Insert the ledger row for a line.

        Returns True when this call created the row and False when the line
        was already recorded. A uniqueness violation is never raised. The
        caller owns the surrounding transaction and its commit.
        """
        values = {
            "provider": account.provider,
            "marketplace_account_id": account.id,
            "remote_order_id": remote_order_id,
            "remote_line_id": remote_line_id,
            "product_id": product_id,
            "quantity": quantity,
            "processed_at": utc_now(),
        }

        dialect_insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
        if dialect_insert is not None:
            stmt = dialect_insert(ProcessedOrderLine).values(**values)
            stmt = stmt.on_conflict_do_nothing(index_elements=LEDGER_KEY_COLUMNS)
            result = await self.db.execute(stmt)
            created = result.rowcount == 1
        else:
            created = await self._record_in_savepoint(values)

        if not created:
            logger.info(
                f"Order line already recorded (account={account.id}, order={remote_order_id}, line={remote_line_id})"
            )
        return created

    async def _record_in_savepoint(self, values: Dict[str, Any]) -> bool:
        try:
            async with self.db.begin_nested():
                await self.db.execute(insert(ProcessedOrderLine).values(**values))
        except IntegrityError:
            # Another run already handled this exact line
            return False
        return True
