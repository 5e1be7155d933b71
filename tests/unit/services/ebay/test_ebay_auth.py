# tests/unit/services/ebay/test_ebay_auth.py
import base64
from datetime import datetime, timedelta

import httpx
import pytest

from app.core.config import DEFAULT_FULFILLMENT_SCOPE
from app.core.exceptions import (
    CredentialsMissingError,
    MissingTokenError,
    NoAccessTokenError,
    RefreshTokenMissingError,
    TokenRefreshError,
)
from app.services.ebay.auth import EbayAuthManager

"""
1. Authentication Manager Initialization Tests
"""

async def test_auth_manager_uses_production_token_url(db_session, seed, http_client):
    account = await seed.account()
    auth = EbayAuthManager(db_session, account, http_client)

    assert auth.token_refresh_url == "https://api.ebay.com/identity/v1/oauth2/token"
    assert auth.refresh_count == 0

async def test_auth_manager_uses_sandbox_token_url(db_session, seed, http_client):
    account = await seed.account(environment="sandbox")
    auth = EbayAuthManager(db_session, account, http_client)

    assert "api.sandbox.ebay.com" in auth.token_refresh_url

"""
2. Stored Token Tests
"""

async def test_get_valid_token_returns_latest_row(db_session, seed, http_client):
    account = await seed.account()
    now = datetime(2025, 1, 1, 12, 0, 0)
    await seed.token(account, access_token="older", updated_at=now - timedelta(hours=3))
    await seed.token(account, access_token="newest", updated_at=now)

    auth = EbayAuthManager(db_session, account, http_client)

    assert await auth.get_valid_token() == "newest"

async def test_get_valid_token_ignores_other_accounts(db_session, seed, http_client):
    account = await seed.account()
    other = await seed.account(name="Other Shop")
    await seed.token(other, access_token="not-mine")

    auth = EbayAuthManager(db_session, account, http_client)

    with pytest.raises(MissingTokenError) as excinfo:
        await auth.get_valid_token()
    assert excinfo.value.reason == "missing_token"
    assert excinfo.value.account_id == account.id

async def test_get_valid_token_without_access_token(db_session, seed, http_client):
    account = await seed.account()
    await seed.token(account, access_token=None)

    auth = EbayAuthManager(db_session, account, http_client)

    with pytest.raises(NoAccessTokenError) as excinfo:
        await auth.get_valid_token()
    assert excinfo.value.reason == "no_access_token"

"""
3. Token Refresh Tests
"""

async def test_refresh_appends_new_token_row(db_session, seed, http_client, fake_ebay):
    account = await seed.account()
    await seed.token(account, access_token="stale", refresh_token="r-1")
    fake_ebay.refresh_responses["r-1"] = (200, {"access_token": "fresh", "expires_in": 7200, "token_type": "User Access Token"})

    auth = EbayAuthManager(db_session, account, http_client)
    await auth.get_valid_token()
    token = await auth.refresh_access_token()

    assert token == "fresh"
    assert auth.refresh_count == 1

    rows = await seed.tokens(account)
    assert [r.access_token for r in rows] == ["stale", "fresh"]
    assert rows[-1].refresh_token == "r-1"
    assert rows[-1].expires_in == 7200

    # The refreshed token is now the one in use
    assert await EbayAuthManager(db_session, account, http_client).get_valid_token() == "fresh"

async def test_refresh_request_uses_basic_auth_and_form_body(db_session, seed, http_client, fake_ebay):
    account = await seed.account(client_id="my-app", client_secret="s3cret")
    await seed.token(account, refresh_token="r-1")
    fake_ebay.refresh_responses["r-1"] = (200, {"access_token": "fresh"})

    auth = EbayAuthManager(db_session, account, http_client)
    await auth.refresh_access_token()

    request = fake_ebay.requests[-1]
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"my-app:s3cret").decode()
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert fake_ebay.token_requests == [{
        "grant_type": "refresh_token",
        "refresh_token": "r-1",
        "scope": DEFAULT_FULFILLMENT_SCOPE,
    }]

async def test_refresh_echoes_stored_scopes(db_session, seed, http_client, fake_ebay):
    scopes = [
        "https://api.ebay.com/oauth/api_scope",
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment",
    ]
    account = await seed.account()
    await seed.token(account, refresh_token="r-1", scopes=scopes)
    fake_ebay.refresh_responses["r-1"] = (200, {"access_token": "fresh"})

    auth = EbayAuthManager(db_session, account, http_client)
    await auth.refresh_access_token()

    assert fake_ebay.token_requests[0]["scope"] == " ".join(scopes)
    assert (await seed.tokens(account))[-1].scopes == scopes

async def test_refresh_uses_configured_default_scope(db_session, seed, http_client, fake_ebay):
    account = await seed.account()
    await seed.token(account, refresh_token="r-1")
    fake_ebay.refresh_responses["r-1"] = (200, {"access_token": "fresh"})

    auth = EbayAuthManager(db_session, account, http_client, default_scopes="scope-a scope-b")
    await auth.refresh_access_token()

    assert fake_ebay.token_requests[0]["scope"] == "scope-a scope-b"

async def test_refresh_rejected_by_ebay(db_session, seed, http_client, fake_ebay):
    account = await seed.account()
    await seed.token(account, refresh_token="r-1")
    fake_ebay.refresh_responses["r-1"] = (400, {"error": "invalid_grant"})

    auth = EbayAuthManager(db_session, account, http_client)

    with pytest.raises(TokenRefreshError) as excinfo:
        await auth.refresh_access_token()
    assert excinfo.value.reason == "token_expired"
    assert len(await seed.tokens(account)) == 1

async def test_refresh_without_access_token_in_response(db_session, seed, http_client, fake_ebay):
    account = await seed.account()
    await seed.token(account, refresh_token="r-1")
    fake_ebay.refresh_responses["r-1"] = (200, {"expires_in": 7200})

    auth = EbayAuthManager(db_session, account, http_client)

    with pytest.raises(TokenRefreshError):
        await auth.refresh_access_token()
    assert len(await seed.tokens(account)) == 1

async def test_refresh_network_error(db_session, seed):
    account = await seed.account()
    await seed.token(account, refresh_token="r-1")

    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(boom)) as client:
        auth = EbayAuthManager(db_session, account, client)
        with pytest.raises(TokenRefreshError):
            await auth.refresh_access_token()

async def test_refresh_without_refresh_token(db_session, seed, http_client, fake_ebay):
    account = await seed.account()
    await seed.token(account, refresh_token=None)

    auth = EbayAuthManager(db_session, account, http_client)

    with pytest.raises(RefreshTokenMissingError) as excinfo:
        await auth.refresh_access_token()
    assert excinfo.value.reason == "cannot_refresh"
    assert fake_ebay.requests == []

async def test_refresh_without_client_credentials(db_session, seed, http_client, fake_ebay):
    account = await seed.account(client_secret=None)
    await seed.token(account, refresh_token="r-1")

    auth = EbayAuthManager(db_session, account, http_client)

    with pytest.raises(CredentialsMissingError) as excinfo:
        await auth.refresh_access_token()
    assert excinfo.value.reason == "cannot_refresh"
    assert fake_ebay.requests == []
    assert auth.refresh_count == 0
