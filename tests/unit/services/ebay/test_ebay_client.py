# tests/unit/services/ebay/test_ebay_client.py
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from app.core.exceptions import OrderFetchError, TokenRefreshError
from app.services.ebay.client import EbayClient, TimeWindow, format_ebay_timestamp

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


async def collect(pages):
    return [page async for page in pages]


"""
1. Window and URL Tests
"""

def test_format_ebay_timestamp_naive_is_utc():
    assert format_ebay_timestamp(datetime(2025, 3, 1, 12, 0, 5, 999)) == "2025-03-01T12:00:05Z"

def test_trailing_window_filter():
    window = TimeWindow.trailing(120, NOW)

    assert window.start == datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)
    assert window.filter_value == "lastmodifieddate:[2025-03-01T10:00:00Z..2025-03-01T12:00:00Z]"

def test_build_orders_url_encodes_filter():
    client = EbayClient(httpx.AsyncClient())
    url = httpx.URL(client.build_orders_url(TimeWindow.trailing(60, NOW), limit=50))

    assert str(url).startswith("https://api.ebay.com/sell/fulfillment/v1/order?")
    assert url.params["filter"] == "lastmodifieddate:[2025-03-01T11:00:00Z..2025-03-01T12:00:00Z]"
    assert url.params["limit"] == "50"

def test_sandbox_client_uses_sandbox_api():
    client = EbayClient(httpx.AsyncClient(), sandbox=True)

    assert client.build_orders_url(TimeWindow.trailing(60, NOW)).startswith(
        "https://api.sandbox.ebay.com/sell/fulfillment/v1/order"
    )

"""
2. Pagination Tests
"""

async def test_follows_next_until_exhausted(http_client, fake_ebay, make_order):
    fake_ebay.pages["tok"] = [
        [make_order("O1", ("L1", "A", 1))],
        [make_order("O2", ("L2", "B", 1)), make_order("O3", ("L3", "C", 1))],
        [make_order("O4", ("L4", "D", 1))],
    ]
    refresh = AsyncMock()

    client = EbayClient(http_client, account_id=1)
    pages = await collect(client.iter_order_pages("tok", TimeWindow.trailing(120, NOW), refresh))

    assert [p.number for p in pages] == [1, 2, 3]
    assert [o["orderId"] for p in pages for o in p.orders] == ["O1", "O2", "O3", "O4"]
    assert pages[-1].next_url is None
    assert len(fake_ebay.order_requests) == 3
    refresh.assert_not_awaited()

async def test_sends_bearer_token(http_client, fake_ebay):
    fake_ebay.pages["tok"] = [[]]

    client = EbayClient(http_client)
    pages = await collect(client.iter_order_pages("tok", TimeWindow.trailing(120, NOW), AsyncMock()))

    assert len(pages) == 1
    assert pages[0].orders == []
    request = fake_ebay.order_requests[0]
    assert request.headers["Authorization"] == "Bearer tok"
    assert request.headers["Accept"] == "application/json"

async def test_missing_orders_key_is_empty_page():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"total": 0}))
    async with httpx.AsyncClient(transport=transport) as http_client:
        client = EbayClient(http_client)
        pages = await collect(client.iter_order_pages("tok", TimeWindow.trailing(120, NOW), AsyncMock()))

    assert len(pages) == 1
    assert pages[0].orders == []

"""
3. Unauthorized / Refresh Tests
"""

async def test_unauthorized_refreshes_once_and_retries_same_page(http_client, fake_ebay, make_order):
    fake_ebay.pages["fresh"] = [
        [make_order("O1", ("L1", "A", 1))],
        [make_order("O2", ("L2", "B", 1))],
    ]
    refresh = AsyncMock(return_value="fresh")

    client = EbayClient(http_client, account_id=7)
    pages = await collect(client.iter_order_pages("stale", TimeWindow.trailing(120, NOW), refresh))

    refresh.assert_awaited_once()
    assert [p.number for p in pages] == [1, 2]

    requests = fake_ebay.order_requests
    assert [r.headers["Authorization"] for r in requests] == ["Bearer stale", "Bearer fresh", "Bearer fresh"]
    assert requests[0].url == requests[1].url

async def test_unauthorized_after_refresh_fails(http_client, fake_ebay):
    fake_ebay.pages["fresh"] = [[]]
    fake_ebay.expired.add("fresh")
    refresh = AsyncMock(return_value="fresh")

    client = EbayClient(http_client)

    with pytest.raises(OrderFetchError) as excinfo:
        await collect(client.iter_order_pages("stale", TimeWindow.trailing(120, NOW), refresh))

    assert excinfo.value.status_code == 401
    refresh.assert_awaited_once()
    assert len(fake_ebay.order_requests) == 2

async def test_refresh_failure_propagates(http_client, fake_ebay):
    refresh = AsyncMock(side_effect=TokenRefreshError("invalid_grant"))

    client = EbayClient(http_client)

    with pytest.raises(TokenRefreshError):
        await collect(client.iter_order_pages("stale", TimeWindow.trailing(120, NOW), refresh))
    assert len(fake_ebay.order_requests) == 1

"""
4. Failure Tests
"""

async def test_server_error_stops_after_yielded_pages(http_client, fake_ebay, make_order):
    fake_ebay.pages["tok"] = [
        [make_order("O1", ("L1", "A", 1))],
        [make_order("O2", ("L2", "B", 1))],
        [make_order("O3", ("L3", "C", 1))],
    ]
    fake_ebay.order_errors[("tok", 1)] = 500

    client = EbayClient(http_client)
    seen = []
    with pytest.raises(OrderFetchError) as excinfo:
        async for page in client.iter_order_pages("tok", TimeWindow.trailing(120, NOW), AsyncMock()):
            seen.append(page)

    assert excinfo.value.reason == "fetch_failed"
    assert excinfo.value.status_code == 500
    assert [p.number for p in seen] == [1]
    assert len(fake_ebay.order_requests) == 2

async def test_non_json_body_fails():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    async with httpx.AsyncClient(transport=transport) as http_client:
        client = EbayClient(http_client)
        with pytest.raises(OrderFetchError):
            await collect(client.iter_order_pages("tok", TimeWindow.trailing(120, NOW), AsyncMock()))

async def test_network_error_fails():
    def boom(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(boom)) as http_client:
        client = EbayClient(http_client)
        with pytest.raises(OrderFetchError):
            await collect(client.iter_order_pages("tok", TimeWindow.trailing(120, NOW), AsyncMock()))
