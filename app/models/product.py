"""
Catalog products.

A product with ``parent_id`` set is a mirror: an alternate listing of the
parent that shares the parent's physical stock and owns no stock bucket.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.marketplace import utc_now


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    sku = Column(String, index=True)
    name = Column(String)
    parent_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    parent = relationship("Product", remote_side=[id], back_populates="mirrors")
    mirrors = relationship("Product", back_populates="parent")

    @property
    def is_parent(self) -> bool:
        return self.parent_id is None

    @property
    def stock_owner_id(self) -> int:
        """Id of the product whose buckets carry this product's stock."""
        return self.parent_id or self.id

    def __repr__(self):
        return f"<Product id={self.id} sku={self.sku} parent_id={self.parent_id}>"
