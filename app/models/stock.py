# app/models/stock.py
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from app.database import Base
from app.models.marketplace import utc_now


class StockBucket(Base):
    """Quantity of one (parent) product held in the pool of one sales channel."""
    __tablename__ = "stock_buckets"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    channel_id = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("product_id", "channel_id", name="uq_stock_bucket_product_channel"),
        CheckConstraint("quantity >= 0", name="ck_stock_bucket_quantity_non_negative"),
    )
