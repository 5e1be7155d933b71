from .marketplace import MarketplaceAccount, OAuthToken
from .product import Product
from .product_mapping import ProductSkuMapping
from .processed_order import ProcessedOrderLine
from .stock import StockBucket

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'MarketplaceAccount',
    'OAuthToken',
    'Product',
    'ProductSkuMapping',
    'ProcessedOrderLine',
    'StockBucket',
]
