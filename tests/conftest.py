# tests/conftest.py
import urllib.parse
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import ReconciliationConfig, Settings
from app.database import Base
from app.models import (
    MarketplaceAccount,
    OAuthToken,
    ProcessedOrderLine,
    Product,
    ProductSkuMapping,
    StockBucket,
)


@pytest.fixture
def settings(tmp_path):
    """Provide test settings"""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'settings.db'}",
        EBAY_STOCK_CHANNEL_ID="ebay",
        EBAY_ORDERS_WINDOW_MINUTES=120,
    )


@pytest.fixture
def config():
    return ReconciliationConfig(channel_id="ebay", window_minutes=120, page_limit=100)


# A file database so every session gets its own connection, like production
@pytest.fixture
async def test_engine(tmp_path):
    """Create and configure the test database engine (function-scoped)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


class Seed:
    """Writes fixture rows in their own committed sessions."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add(self, *rows):
        async with self.session_factory() as db:
            db.add_all(rows)
            await db.commit()
        return rows[0] if len(rows) == 1 else rows

    async def account(self, **kwargs) -> MarketplaceAccount:
        values = {
            "provider": "ebay",
            "environment": "production",
            "name": "Test Shop",
            "is_active": True,
            "client_id": "client-id",
            "client_secret": "client-secret",
        }
        values.update(kwargs)
        return await self.add(MarketplaceAccount(**values))

    async def token(self, account, access_token="access-1", refresh_token="refresh-1", scopes=None, **kwargs) -> OAuthToken:
        return await self.add(OAuthToken(
            marketplace_account_id=account.id,
            provider=account.provider,
            environment=account.environment,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=7200,
            scopes=scopes,
            **kwargs,
        ))

    async def product(self, sku, parent=None, name=None) -> Product:
        return await self.add(Product(sku=sku, name=name or sku, parent_id=parent.id if parent else None))

    async def mapping(self, account, remote_sku, product) -> ProductSkuMapping:
        return await self.add(ProductSkuMapping(
            provider=account.provider,
            marketplace_account_id=account.id,
            remote_sku=remote_sku,
            product_id=product.id if isinstance(product, Product) else product,
        ))

    async def bucket(self, product, quantity, channel_id="ebay") -> StockBucket:
        return await self.add(StockBucket(product_id=product.id, channel_id=channel_id, quantity=quantity))

    async def bucket_quantity(self, product, channel_id="ebay") -> Optional[int]:
        product_id = product.id if isinstance(product, Product) else product
        async with self.session_factory() as db:
            result = await db.execute(
                select(StockBucket.quantity).where(
                    StockBucket.product_id == product_id,
                    StockBucket.channel_id == channel_id,
                )
            )
            return result.scalar_one_or_none()

    async def ledger_rows(self, account=None) -> List[ProcessedOrderLine]:
        async with self.session_factory() as db:
            stmt = select(ProcessedOrderLine).order_by(ProcessedOrderLine.id)
            if account is not None:
                stmt = stmt.where(ProcessedOrderLine.marketplace_account_id == account.id)
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def tokens(self, account) -> List[OAuthToken]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(OAuthToken)
                .where(OAuthToken.marketplace_account_id == account.id)
                .order_by(OAuthToken.id)
            )
            return list(result.scalars().all())

    async def mappings(self, account) -> List[ProductSkuMapping]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ProductSkuMapping)
                .where(ProductSkuMapping.marketplace_account_id == account.id)
                .order_by(ProductSkuMapping.id)
            )
            return list(result.scalars().all())


@pytest.fixture
def seed(session_factory):
    return Seed(session_factory)


class FakeEbay:
    """
    In-process stand-in for the eBay token and Fulfillment endpoints.

    Order pages are keyed by access token; ``offset`` in the URL selects the
    page and a ``next`` link is returned while pages remain.
    """

    def __init__(self):
        self.pages: Dict[str, List[List[Dict[str, Any]]]] = {}
        self.expired: Set[str] = set()
        self.refresh_responses: Dict[str, Tuple[int, Any]] = {}
        self.order_errors: Dict[Tuple[str, int], int] = {}
        self.requests: List[httpx.Request] = []
        self.token_requests: List[Dict[str, str]] = []

    @property
    def order_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "POST" and request.url.path.endswith("/oauth2/token"):
            form = dict(urllib.parse.parse_qsl(request.content.decode()))
            self.token_requests.append(form)
            status, body = self.refresh_responses.get(
                form.get("refresh_token"), (400, {"error": "invalid_grant"})
            )
            return httpx.Response(status, json=body)

        if request.method == "GET" and request.url.path.endswith("/order"):
            token = request.headers.get("Authorization", "").replace("Bearer ", "", 1)
            if token in self.expired or token not in self.pages:
                return httpx.Response(401, json={"errors": [{"errorId": 1001, "message": "Invalid access token"}]})

            index = int(request.url.params.get("offset", "0"))
            failure = self.order_errors.get((token, index))
            if failure:
                return httpx.Response(failure, text="upstream failure")

            pages = self.pages[token]
            body: Dict[str, Any] = {"orders": pages[index] if index < len(pages) else []}
            if index + 1 < len(pages):
                body["next"] = str(request.url.copy_set_param("offset", str(index + 1)))
            return httpx.Response(200, json=body)

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def fake_ebay():
    return FakeEbay()


@pytest.fixture
async def http_client(fake_ebay):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_ebay.handler)) as client:
        yield client


@pytest.fixture
def make_order():
    """Build a Fulfillment API order: make_order("O1", ("L1", "SKU", 2), ...)"""
    def _make(order_id, *lines):
        return {
            "orderId": order_id,
            "lineItems": [
                {"lineItemId": line_id, "sku": sku, "quantity": quantity}
                for line_id, sku, quantity in lines
            ],
        }
    return _make
