import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from app.core.exceptions import OrderFetchError

logger = logging.getLogger(__name__)


def format_ebay_timestamp(value: datetime) -> str:
    """ISO-8601 UTC at second precision, as the Fulfillment API filter expects"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class TimeWindow:
    """Closed [start, end] range of order last-modified dates"""
    start: datetime
    end: datetime

    @classmethod
    def trailing(cls, minutes: int, now: Optional[datetime] = None) -> "TimeWindow":
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(minutes=minutes), end=end)

    @property
    def filter_value(self) -> str:
        return f"lastmodifieddate:[{format_ebay_timestamp(self.start)}..{format_ebay_timestamp(self.end)}]"


@dataclass
class OrderPage:
    number: int
    url: str
    orders: List[Dict[str, Any]] = field(default_factory=list)
    next_url: Optional[str] = None


class EbayClient:
    """
    Client for the eBay Sell Fulfillment API.
    Walks the paginated order search for one account.
    """

    # eBay API endpoints
    FULFILLMENT_API = "https://api.ebay.com/sell/fulfillment/v1"

    def __init__(self, http_client: httpx.AsyncClient, sandbox: bool = False, account_id=None):
        self.http_client = http_client
        self.sandbox = sandbox
        self.account_id = account_id

        # Set API endpoints
        if sandbox:
            self.FULFILLMENT_API = "https://api.sandbox.ebay.com/sell/fulfillment/v1"
        else:
            self.FULFILLMENT_API = "https://api.ebay.com/sell/fulfillment/v1"

    @staticmethod
    def _get_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def build_orders_url(self, window: TimeWindow, limit: int = 100) -> str:
        url = httpx.URL(
            f"{self.FULFILLMENT_API}/order",
            params={"filter": window.filter_value, "limit": str(limit)},
        )
        return str(url)

    async def _get(self, url: str, token: str) -> httpx.Response:
        try:
            return await self.http_client.get(url, headers=self._get_headers(token))
        except httpx.RequestError as e:
            logger.error(f"Network error fetching orders for account {self.account_id}: {str(e)}")
            raise OrderFetchError(f"Network error fetching orders: {str(e)}", self.account_id)

    async def iter_order_pages(
        self,
        token: str,
        window: TimeWindow,
        on_unauthorized: Callable[[], Awaitable[str]],
        limit: int = 100,
    ) -> AsyncIterator[OrderPage]:
        """
        Yield each page of orders modified within ``window``.

        Pages are requested one at a time, following the ``next`` link until
        the response carries none. A 401 calls ``on_unauthorized`` once for a
        fresh token and retries the same page; whatever that callback raises
        propagates. Any other failure raises OrderFetchError and ends the
        iteration, pages already yielded stay yielded.

        Args:
            token: Current access token
            window: Last-modified date range to query
            on_unauthorized: Coroutine returning a refreshed access token
            limit: Page size

        Raises:
            OrderFetchError: If a page cannot be fetched or decoded
        """
        page_url: Optional[str] = self.build_orders_url(window, limit)
        page_number = 0

        while page_url:
            page_number += 1
            response = await self._get(page_url, token)

            if response.status_code == 401:
                logger.info(f"Orders page {page_number} unauthorized for account {self.account_id}, refreshing token")
                token = await on_unauthorized()
                response = await self._get(page_url, token)

            if not response.is_success:
                logger.warning(
                    f"Orders fetch failed for account {self.account_id}: "
                    f"HTTP {response.status_code} {response.text[:200]}"
                )
                raise OrderFetchError(
                    f"Failed to fetch orders page {page_number}: HTTP {response.status_code}",
                    self.account_id,
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError:
                raise OrderFetchError(f"Orders page {page_number} is not valid JSON", self.account_id)

            if not isinstance(payload, dict):
                payload = {}

            orders = payload.get("orders")
            next_url = payload.get("next")
            page = OrderPage(
                number=page_number,
                url=page_url,
                orders=orders if isinstance(orders, list) else [],
                next_url=next_url if isinstance(next_url, str) and next_url else None,
            )

            logger.debug(f"Account {self.account_id}: page {page_number} returned {len(page.orders)} orders")
            yield page

            page_url = page.next_url
