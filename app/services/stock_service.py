# app/services/stock_service.py
"""
Channel stock buckets.

Decrements are clamped at zero: an oversell against a channel pool empties
the bucket instead of failing the reconciliation. A missing bucket is
created empty, never negative.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.marketplace import utc_now
from app.models.stock import StockBucket

logger = logging.getLogger(__name__)


class StockLocks:
    """
    One asyncio.Lock per (product_id, channel_id) for the duration of a run.

    Bucket updates are read-modify-write, so work on the same bucket must be
    serialized while different buckets proceed concurrently.
    """

    def __init__(self):
        self._locks: Dict[Tuple[int, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_bucket(self, product_id: int, channel_id: str) -> asyncio.Lock:
        return self._locks[(product_id, channel_id)]

    def __len__(self) -> int:
        return len(self._locks)


class StockService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_bucket(self, product_id: int, channel_id: str, for_update: bool = False):
        stmt = select(StockBucket).where(
            StockBucket.product_id == product_id,
            StockBucket.channel_id == channel_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def decrement(self, product_id: int, channel_id: str, quantity: int) -> int:
        """
        Subtract ``quantity`` from the bucket, never going below zero.

        Returns the new quantity. Changes are flushed but not committed.
        """
        bucket = await self.get_bucket(product_id, channel_id, for_update=True)

        if bucket is None:
            bucket = StockBucket(product_id=product_id, channel_id=channel_id, quantity=0, updated_at=utc_now())
            self.db.add(bucket)
            await self.db.flush()
            logger.warning(
                f"No {channel_id} stock bucket for product {product_id}, created empty bucket "
                f"(wanted to remove {quantity})"
            )
            return 0

        current = bucket.quantity or 0
        new_quantity = max(0, current - quantity)
        if current < quantity:
            logger.warning(
                f"Oversell on {channel_id} for product {product_id}: have {current}, "
                f"order wants {quantity}, clamping to 0"
            )

        bucket.quantity = new_quantity
        bucket.updated_at = utc_now()
        await self.db.flush()

        logger.info(f"Decremented {channel_id} stock of product {product_id} by {quantity} -> {new_quantity}")
        return new_quantity
