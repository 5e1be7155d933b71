# app/models/product_mapping.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.enums import MappingStatus, MarketplaceProvider
from app.database import Base
from app.models.marketplace import utc_now


class ProductSkuMapping(Base):
    """
    Maps a remote marketplace SKU to a local product. Mappings are scoped to
    one marketplace account: the same SKU string can point at different
    products on different accounts.
    """
    __tablename__ = "marketplace_products_map"

    id = Column(Integer, primary_key=True)
    provider = Column(String, nullable=False, default=MarketplaceProvider.EBAY.value)
    marketplace_account_id = Column(Integer, ForeignKey("marketplace_accounts.id"), nullable=False)
    remote_sku = Column(String, nullable=False)
    remote_id = Column(String)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    mapping_status = Column(String, nullable=False, default=MappingStatus.LINKED.value)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    product = relationship("Product")

    # Unique constraint to prevent duplicate mappings
    __table_args__ = (
        UniqueConstraint(
            "provider", "marketplace_account_id", "remote_sku",
            name="uq_marketplace_products_map_account_sku",
        ),
    )
