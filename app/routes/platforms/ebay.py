import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import ReconciliationConfig, Settings, get_settings
from app.core.enums import MarketplaceProvider
from app.dependencies import get_db, get_db_session_factory, get_http_client
from app.models.marketplace import MarketplaceAccount
from app.schemas.platform.ebay import (
    BulkLinkBySkuRequest,
    BulkLinkBySkuResponse,
    LinkBySkuRequest,
    LinkProductRequest,
    OrderSyncResponse,
)
from app.services.order_sale_processor import OrderSaleProcessor
from app.services.sku_service import SkuMappingService

router = APIRouter(prefix="/api", tags=["ebay"])

logger = logging.getLogger(__name__)


@router.api_route(
    "/ebay/orders/sync",
    methods=["GET", "POST"],
    response_model=OrderSyncResponse,
    response_model_exclude_none=True,
)
async def sync_ebay_orders(
    account_id: Optional[int] = Query(None, description="Only reconcile this marketplace account"),
    session_factory: async_sessionmaker = Depends(get_db_session_factory),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    """Pull recent eBay orders and apply them to the eBay stock bucket."""
    processor = OrderSaleProcessor(session_factory, http_client, ReconciliationConfig.from_settings(settings))
    try:
        summary = await processor.run(account_id=account_id)
    except Exception as e:
        logger.exception("eBay orders sync failed")
        return JSONResponse(status_code=500, content={"error": "server_error", "detail": str(e) or "unknown"})
    return summary.to_dict()


async def _get_active_account(db: AsyncSession, account_id: int) -> MarketplaceAccount:
    result = await db.execute(
        select(MarketplaceAccount).where(
            MarketplaceAccount.id == account_id,
            MarketplaceAccount.provider == MarketplaceProvider.EBAY.value,
            MarketplaceAccount.is_active.is_(True),
        )
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise HTTPException(status_code=404, detail="Marketplace account not found or inactive")
    return account


@router.post("/ebay/mappings/link-by-sku")
async def link_ebay_sku(request: LinkBySkuRequest, db: AsyncSession = Depends(get_db)):
    """Map one remote SKU to the catalog product it matches."""
    account = await _get_active_account(db, request.account_id)
    result = await SkuMappingService(db).link_by_sku(account, request.remote_sku, request.remote_id)

    if result["status"] == "conflict":
        raise HTTPException(status_code=409, detail="SKU already mapped to another product")
    if result["status"] == "error":
        raise HTTPException(status_code=500, detail="Failed to store mapping")
    return result


@router.post("/ebay/mappings/link")
async def link_ebay_sku_to_product(request: LinkProductRequest, db: AsyncSession = Depends(get_db)):
    """Map one remote SKU to an explicit product, settling an ambiguous match."""
    account = await _get_active_account(db, request.account_id)
    result = await SkuMappingService(db).link_product(
        account, request.remote_sku, request.product_id, request.remote_id
    )

    if result["status"] == "bad_item":
        raise HTTPException(status_code=422, detail="remote_sku is blank")
    if result["status"] == "not_found":
        raise HTTPException(status_code=404, detail="Product not found")
    if result["status"] == "conflict":
        raise HTTPException(status_code=409, detail="SKU already mapped to another product")
    if result["status"] == "error":
        raise HTTPException(status_code=500, detail="Failed to store mapping")
    return result


@router.post("/ebay/mappings/bulk-link-by-sku", response_model=BulkLinkBySkuResponse)
async def bulk_link_ebay_skus(request: BulkLinkBySkuRequest, db: AsyncSession = Depends(get_db)):
    """Map many remote SKUs; anything ambiguous is returned for review."""
    account = await _get_active_account(db, request.account_id)
    items = [item.model_dump() for item in request.items]
    return await SkuMappingService(db).bulk_link_by_sku(account, items, dry_run=request.dry_run)
