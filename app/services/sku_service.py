import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import LinkStatus, MappingStatus, SkuMatchStatus
from app.models.marketplace import MarketplaceAccount, utc_now
from app.models.product import Product
from app.models.product_mapping import ProductSkuMapping
from app.services.match_utils import match_catalog_sku

logger = logging.getLogger(__name__)

BULK_RESULTS_LIMIT = 50


@dataclass(frozen=True)
class SkuResolution:
    sku: str
    mapped_product_id: Optional[int] = None
    stock_product_id: Optional[int] = None

    @property
    def is_mapped(self) -> bool:
        return self.mapped_product_id is not None


class SkuResolver:
    """
    Resolves a remote SKU of one marketplace account to the product that
    owns its stock.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def mapped_product_id(self, account: MarketplaceAccount, sku: str) -> Optional[int]:
        stmt = select(ProductSkuMapping.product_id).where(
            ProductSkuMapping.provider == account.provider,
            ProductSkuMapping.marketplace_account_id == account.id,
            ProductSkuMapping.remote_sku == sku,
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve(self, account: MarketplaceAccount, sku: str) -> SkuResolution:
        """
        Look up the account-scoped mapping for ``sku`` and substitute the
        parent product (``parent_id`` if set, else the product itself).

        An unmapped SKU resolves with both ids None. A mapping whose product
        row is gone keeps its mapped id but has no stock owner.
        """
        product_id = await self.mapped_product_id(account, sku)
        if product_id is None:
            return SkuResolution(sku=sku)

        product = await self.db.get(Product, product_id)
        if product is None:
            logger.warning(f"SKU {sku} on account {account.id} maps to missing product {product_id}")
            return SkuResolution(sku=sku, mapped_product_id=product_id)

        return SkuResolution(sku=sku, mapped_product_id=product_id, stock_product_id=product.stock_owner_id)


class SkuMappingService:
    """
    Manual mapping workflow: links remote SKUs of an account to catalog
    products found by the catalog SKU matcher or picked by the operator.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.resolver = SkuResolver(db)

    @staticmethod
    def _candidate_payload(products: Iterable[Product]) -> List[Dict[str, Any]]:
        return [
            {"id": p.id, "sku": p.sku, "name": p.name, "parent_id": p.parent_id}
            for p in products
        ]

    async def _link(self, account: MarketplaceAccount, sku: str, remote_id: Optional[str], dry_run: bool) -> Dict[str, Any]:
        match = await match_catalog_sku(self.db, sku)

        if match.status is SkuMatchStatus.NOT_FOUND:
            return {"remote_sku": sku, "status": LinkStatus.NOT_FOUND.value}

        if match.status is SkuMatchStatus.MULTIPLE_MATCHES:
            return {
                "remote_sku": sku,
                "status": LinkStatus.MULTIPLE_MATCHES.value,
                "candidates": self._candidate_payload(match.candidates),
            }

        product_id = match.product_id
        if dry_run:
            return {"remote_sku": sku, "status": LinkStatus.WOULD_LINK.value, "product_id": product_id}

        return await self._store_mapping(account, sku, remote_id, product_id, f"{match.tier} match")

    async def _store_mapping(
        self,
        account: MarketplaceAccount,
        sku: str,
        remote_id: Optional[str],
        product_id: int,
        source: str,
    ) -> Dict[str, Any]:
        account_id = account.id
        existing = await self.resolver.mapped_product_id(account, sku)
        if existing is not None:
            if existing == product_id:
                return {"remote_sku": sku, "status": LinkStatus.OK.value, "product_id": product_id}
            return {"remote_sku": sku, "status": LinkStatus.CONFLICT.value, "product_id": existing}

        self.db.add(ProductSkuMapping(
            provider=account.provider,
            marketplace_account_id=account_id,
            remote_sku=sku,
            remote_id=remote_id,
            product_id=product_id,
            mapping_status=MappingStatus.LINKED.value,
            updated_at=utc_now(),
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to store mapping {sku} -> {product_id} for account {account_id}: {e}")
            return {"remote_sku": sku, "status": LinkStatus.ERROR.value, "message": "insert_failed"}

        logger.info(f"Linked SKU {sku} on account {account_id} to product {product_id} ({source})")
        return {"remote_sku": sku, "status": LinkStatus.OK.value, "product_id": product_id}

    async def link_by_sku(self, account: MarketplaceAccount, remote_sku: str, remote_id: Optional[str] = None) -> Dict[str, Any]:
        sku = (remote_sku or "").strip()
        if not sku:
            return {"remote_sku": None, "status": LinkStatus.BAD_ITEM.value}
        return await self._link(account, sku, remote_id, dry_run=False)

    async def link_product(
        self,
        account: MarketplaceAccount,
        remote_sku: str,
        product_id: int,
        remote_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Map a remote SKU to a product chosen by the operator, e.g. one of the
        candidates returned for an ambiguous match. The catalog matcher is
        not consulted.
        """
        sku = (remote_sku or "").strip()
        if not sku:
            return {"remote_sku": None, "status": LinkStatus.BAD_ITEM.value}

        if await self.db.get(Product, product_id) is None:
            return {"remote_sku": sku, "status": LinkStatus.NOT_FOUND.value, "product_id": product_id}

        return await self._store_mapping(account, sku, remote_id, product_id, "manual link")

    async def bulk_link_by_sku(
        self,
        account: MarketplaceAccount,
        items: Iterable[Dict[str, Any]],
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """
        Link many SKUs at once. Items that could not be linked
        (not found, ambiguous or conflicting) are listed under needs_review.
        """
        items = list(items)
        results: List[Dict[str, Any]] = []

        for item in items:
            sku = str(item.get("remote_sku") or "").strip()
            if not sku:
                results.append({"remote_sku": None, "status": LinkStatus.BAD_ITEM.value})
                continue
            results.append(await self._link(account, sku, item.get("remote_id"), dry_run))

        review_statuses = {LinkStatus.MULTIPLE_MATCHES.value, LinkStatus.NOT_FOUND.value, LinkStatus.CONFLICT.value}
        return {
            "linked": sum(1 for r in results if r["status"] == LinkStatus.OK.value),
            "total": len(items),
            "needs_review": [r for r in results if r["status"] in review_statuses],
            "results": results[:BULK_RESULTS_LIMIT],
        }
