"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema

# Platform-Specific Schemas
from .platform.ebay import (
    OrderSyncDetail,
    OrderSyncResponse,
    LinkBySkuRequest,
    MappingItem,
    BulkLinkBySkuRequest,
    BulkLinkBySkuResponse,
)
