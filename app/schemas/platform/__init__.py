# app/schemas/platform/__init__.py
from .ebay import (
    OrderSyncDetail,
    OrderSyncResponse,
    LinkBySkuRequest,
    MappingItem,
    BulkLinkBySkuRequest,
    BulkLinkBySkuResponse,
)
