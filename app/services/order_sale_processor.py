"""
Order Sale Processor Service

Reconciles marketplace orders with channel stock:
- Pulls orders modified in a trailing window for every active account
- Resolves each order line to the parent product owning the stock
- Decrements that product's bucket for the marketplace channel once per line

The processed-lines ledger makes re-runs and overlapping windows safe: a line
is claimed in the ledger before its stock is touched, in the same
transaction, and a line that is already claimed is skipped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import ReconciliationConfig
from app.core.exceptions import AccountAbortedError
from app.models.marketplace import MarketplaceAccount
from app.services.ebay.auth import EbayAuthManager
from app.services.ebay.client import EbayClient, TimeWindow
from app.services.ebay.order_lines import LineDeduplicator, OrderLine, normalize_orders
from app.services.order_ledger import OrderLedger
from app.services.sku_service import SkuResolver
from app.services.stock_service import StockLocks, StockService

logger = logging.getLogger(__name__)


@dataclass
class AccountSummary:
    account_id: Any
    processed: int = 0
    reason: Optional[str] = None
    pages: int = 0
    lines_seen: int = 0
    already_processed: int = 0
    unmapped: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        detail = {"account_id": self.account_id, "processed": self.processed}
        if self.reason:
            detail["reason"] = self.reason
        return detail


@dataclass
class ReconciliationSummary:
    details: List[AccountSummary] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(d.processed for d in self.details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "accounts": len(self.details),
            "processed": self.processed,
            "details": [d.to_dict() for d in self.details],
        }


class OrderSaleProcessor:
    """
    Drives fetch -> normalize -> resolve -> decrement -> record for every
    active marketplace account. A failing account never stops the others.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        http_client: httpx.AsyncClient,
        config: Optional[ReconciliationConfig] = None,
    ):
        self.session_factory = session_factory
        self.http_client = http_client
        self.config = config or ReconciliationConfig()
        self.stock_locks = StockLocks()

    async def load_accounts(self, account_id: Optional[int] = None) -> List[MarketplaceAccount]:
        async with self.session_factory() as db:
            stmt = select(MarketplaceAccount).where(
                MarketplaceAccount.provider == self.config.provider,
                MarketplaceAccount.is_active.is_(True),
            )
            if account_id is not None:
                stmt = stmt.where(MarketplaceAccount.id == account_id)
            result = await db.execute(stmt.order_by(MarketplaceAccount.id))
            return list(result.scalars().all())

    async def run(self, account_id: Optional[int] = None, now: Optional[datetime] = None) -> ReconciliationSummary:
        """
        Reconcile every active account (or only ``account_id``).

        Returns the run summary; per-account problems end up as the account's
        ``reason`` instead of being raised.
        """
        accounts = await self.load_accounts(account_id)
        summary = ReconciliationSummary()
        if not accounts:
            logger.info(f"No active {self.config.provider} accounts to reconcile")
            return summary

        window = TimeWindow.trailing(self.config.window_minutes, now)
        logger.info(
            f"Reconciling {len(accounts)} {self.config.provider} account(s): window={window.filter_value} "
            f"channel={self.config.channel_id} max_concurrent={self.config.max_concurrent_accounts}"
        )

        semaphore = asyncio.Semaphore(self.config.max_concurrent_accounts)

        async def guarded(account: MarketplaceAccount) -> AccountSummary:
            async with semaphore:
                return await self.process_account(account, window)

        results = await asyncio.gather(*(guarded(a) for a in accounts), return_exceptions=True)
        for account, result in zip(accounts, results):
            if isinstance(result, BaseException):
                logger.error(f"Account {account.id} crashed: {result}", exc_info=result)
                result = AccountSummary(account_id=account.id, reason="unexpected_error")
            summary.details.append(result)

        logger.info(f"Reconciliation finished: {summary.processed} line(s) applied across {len(accounts)} account(s)")
        return summary

    async def process_account(self, account: MarketplaceAccount, window: TimeWindow) -> AccountSummary:
        summary = AccountSummary(account_id=account.id)

        async with self.session_factory() as db:
            auth = EbayAuthManager(db, account, self.http_client, self.config.default_scopes)
            client = EbayClient(self.http_client, sandbox=account.is_sandbox, account_id=account.id)
            seen = LineDeduplicator()

            try:
                token = await auth.get_valid_token()
                pages = client.iter_order_pages(
                    token,
                    window,
                    on_unauthorized=auth.refresh_access_token,
                    limit=self.config.page_limit,
                )
                async for page in pages:
                    summary.pages += 1
                    lines = normalize_orders(page.orders, seen)
                    summary.lines_seen += len(lines)
                    for line in lines:
                        await self._process_line_safely(db, account, line, summary)
            except AccountAbortedError as e:
                summary.reason = e.reason
                logger.warning(f"Stopped account {account.id} early ({e.reason}): {e}")
            except Exception as e:
                summary.reason = "unexpected_error"
                logger.error(f"Error reconciling account {account.id}: {str(e)}", exc_info=True)

        logger.info(
            f"Account {account.id}: {summary.processed} applied, {summary.already_processed} already processed, "
            f"{summary.unmapped} unmapped, {summary.errors} error(s) over {summary.pages} page(s)"
        )
        return summary

    async def _process_line_safely(self, db: AsyncSession, account: MarketplaceAccount, line: OrderLine, summary: AccountSummary):
        try:
            await self.process_line(db, account, line, summary)
        except Exception as e:
            # Nothing was committed for this line; the next overlapping run retries it
            await db.rollback()
            summary.errors += 1
            logger.error(
                f"Error processing order {line.remote_order_id} line {line.remote_line_id} "
                f"on account {account.id}: {str(e)}",
                exc_info=True,
            )

    async def process_line(self, db: AsyncSession, account: MarketplaceAccount, line: OrderLine, summary: AccountSummary):
        ledger = OrderLedger(db)

        if await ledger.already_processed(account, line.remote_order_id, line.remote_line_id):
            summary.already_processed += 1
            return

        resolution = await SkuResolver(db).resolve(account, line.sku)

        if resolution.stock_product_id is None:
            # Recorded so overlapping runs do not look at it again
            created = await ledger.record(
                account, line.remote_order_id, line.remote_line_id, resolution.mapped_product_id, line.quantity
            )
            await db.commit()
            if created:
                summary.unmapped += 1
                logger.info(
                    f"SKU {line.sku} (order {line.remote_order_id} line {line.remote_line_id}) is not mapped "
                    f"on account {account.id}, recorded without stock change"
                )
            else:
                summary.already_processed += 1
            return

        async with self.stock_locks.for_bucket(resolution.stock_product_id, self.config.channel_id):
            created = await ledger.record(
                account, line.remote_order_id, line.remote_line_id, resolution.stock_product_id, line.quantity
            )
            if not created:
                await db.commit()
                summary.already_processed += 1
                return

            await StockService(db).decrement(resolution.stock_product_id, self.config.channel_id, line.quantity)
            await db.commit()

        summary.processed += 1


async def reconcile_marketplace_orders(
    session_factory: async_sessionmaker,
    config: ReconciliationConfig,
    account_id: Optional[int] = None,
    http_timeout: float = 30.0,
) -> ReconciliationSummary:
    """
    Convenience function to run one reconciliation with its own HTTP client.
    """
    async with httpx.AsyncClient(timeout=http_timeout) as http_client:
        processor = OrderSaleProcessor(session_factory, http_client, config)
        return await processor.run(account_id=account_id)
