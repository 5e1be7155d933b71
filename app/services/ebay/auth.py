"""
eBay Authentication Manager backed by the oauth_tokens table.

The stored access token is always tried first; there is no expiry check up
front. When a call comes back 401 the caller asks for one refresh, which
exchanges the stored refresh token for a new access token and appends it to
the token store before handing it back.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DEFAULT_FULFILLMENT_SCOPE
from app.core.exceptions import (
    CredentialsMissingError,
    MissingTokenError,
    NoAccessTokenError,
    RefreshTokenMissingError,
    TokenRefreshError,
)
from app.models.marketplace import MarketplaceAccount, OAuthToken
from .token_manager import TokenStore

logger = logging.getLogger(__name__)


class EbayAuthManager:
    """
    Manages the access token of one eBay marketplace account
    """

    def __init__(
        self,
        db: AsyncSession,
        account: MarketplaceAccount,
        http_client: httpx.AsyncClient,
        default_scopes: str = DEFAULT_FULFILLMENT_SCOPE,
    ):
        self.account = account
        self.http_client = http_client
        self.default_scopes = default_scopes
        self.token_store = TokenStore(db)
        self.token_row: Optional[OAuthToken] = None
        self.refresh_count = 0

        if account.is_sandbox:
            self.token_refresh_url = "https://api.sandbox.ebay.com/identity/v1/oauth2/token"
        else:
            self.token_refresh_url = "https://api.ebay.com/identity/v1/oauth2/token"

    async def get_valid_token(self) -> str:
        """
        Return the most recent stored access token for the account.

        Raises:
            MissingTokenError: no token row exists
            NoAccessTokenError: the latest row has no access token
        """
        self.token_row = await self.token_store.latest_token(self.account)
        if self.token_row is None:
            raise MissingTokenError(f"No OAuth token stored for account {self.account.id}", self.account.id)

        if not self.token_row.access_token:
            raise NoAccessTokenError(f"Latest OAuth token for account {self.account.id} has no access token", self.account.id)

        logger.debug(f"Using stored access token for account {self.account.id}")
        return self.token_row.access_token

    async def refresh_access_token(self) -> str:
        """
        Exchange the stored refresh token for a new access token.

        Performs exactly one token request. On success the new token is
        stored as a new row before it is returned.

        Raises:
            RefreshTokenMissingError: no refresh token on file
            CredentialsMissingError: account has no client id/secret
            TokenRefreshError: the exchange failed or returned no access token
        """
        # Re-read: a rolled back line expires the row loaded earlier
        self.token_row = await self.token_store.latest_token(self.account)

        refresh_token = self.token_row.refresh_token if self.token_row is not None else None
        if not refresh_token:
            raise RefreshTokenMissingError(f"No refresh token stored for account {self.account.id}", self.account.id)

        if not self.account.client_id or not self.account.client_secret:
            raise CredentialsMissingError(f"Missing client credentials for account {self.account.id}", self.account.id)

        scopes = self.token_row.scope_string or self.default_scopes

        refresh_data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": scopes,
        }
        auth = httpx.BasicAuth(self.account.client_id, self.account.client_secret)

        self.refresh_count += 1
        logger.info(f"Refreshing access token for account {self.account.id}")

        try:
            response = await self.http_client.post(
                self.token_refresh_url,
                data=refresh_data,
                auth=auth,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as e:
            logger.error(f"Network error refreshing token for account {self.account.id}: {str(e)}")
            raise TokenRefreshError(f"Network error refreshing access token: {str(e)}", self.account.id)

        if not response.is_success:
            logger.error(f"Token refresh failed for account {self.account.id}: {response.status_code} {response.text[:200]}")
            raise TokenRefreshError(f"Failed to refresh access token: HTTP {response.status_code}", self.account.id)

        try:
            token_data = response.json()
        except ValueError:
            raise TokenRefreshError("Token endpoint returned a non-JSON body", self.account.id)

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not access_token:
            logger.error(f"Token refresh for account {self.account.id} returned no access_token")
            raise TokenRefreshError("Token endpoint returned no access_token", self.account.id)

        self.token_row = await self.token_store.append_token(
            self.account,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=token_data.get("expires_in"),
            scopes=self.token_row.scopes,
        )

        logger.info(f"Successfully refreshed access token for account {self.account.id}")
        return access_token
