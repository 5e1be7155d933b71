from typing import Any, Dict, List, Optional

from pydantic import Field

from app.schemas.base import BaseSchema


class OrderSyncDetail(BaseSchema):
    account_id: int
    processed: int = 0
    reason: Optional[str] = None


class OrderSyncResponse(BaseSchema):
    ok: bool = True
    accounts: int = 0
    processed: int = 0
    details: List[OrderSyncDetail] = []


class LinkBySkuRequest(BaseSchema):
    account_id: int
    remote_sku: str = Field(..., min_length=1)
    remote_id: Optional[str] = None


class LinkProductRequest(BaseSchema):
    account_id: int
    remote_sku: str = Field(..., min_length=1)
    product_id: int
    remote_id: Optional[str] = None


class MappingItem(BaseSchema):
    remote_sku: Optional[str] = None
    remote_id: Optional[str] = None


class BulkLinkBySkuRequest(BaseSchema):
    account_id: int
    items: List[MappingItem] = Field(..., min_length=1)
    dry_run: bool = False


class BulkLinkBySkuResponse(BaseSchema):
    linked: int
    total: int
    needs_review: List[Dict[str, Any]] = []
    results: List[Dict[str, Any]] = []
