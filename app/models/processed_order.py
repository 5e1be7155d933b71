# app/models/processed_order.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from app.database import Base
from app.models.marketplace import utc_now


class ProcessedOrderLine(Base):
    """
    Ledger of marketplace order lines already applied to inventory.

    One row per (provider, account, order, line). Unmapped lines are recorded
    with a null product_id so overlapping runs do not evaluate them again.
    """
    __tablename__ = "marketplace_orders_processed"

    id = Column(Integer, primary_key=True)
    provider = Column(String, nullable=False)
    marketplace_account_id = Column(Integer, ForeignKey("marketplace_accounts.id"), nullable=False)
    remote_order_id = Column(String, nullable=False)
    remote_line_id = Column(String, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    processed_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint(
            "provider", "marketplace_account_id", "remote_order_id", "remote_line_id",
            name="uq_marketplace_orders_processed_line",
        ),
    )
