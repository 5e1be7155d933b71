"""
Durable token storage for eBay marketplace accounts.

Tokens live in the oauth_tokens table. Rows are never edited in place: a
refresh appends a new row, so a failed write always leaves the previous token
usable. The most recently updated row is the current one.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.marketplace import MarketplaceAccount, OAuthToken, utc_now

logger = logging.getLogger(__name__)


class TokenStore:
    """Reads and appends OAuth token rows for marketplace accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def latest_token(self, account: MarketplaceAccount) -> Optional[OAuthToken]:
        """Most recently updated token row for the account, if any"""
        stmt = (
            select(OAuthToken)
            .where(
                OAuthToken.marketplace_account_id == account.id,
                OAuthToken.provider == account.provider,
            )
            .order_by(OAuthToken.updated_at.desc(), OAuthToken.id.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def append_token(
        self,
        account: MarketplaceAccount,
        access_token: str,
        refresh_token: Optional[str],
        expires_in: Optional[int] = None,
        scopes: Optional[Iterable[str]] = None,
    ) -> OAuthToken:
        """Persist a new token row and commit it before returning"""
        now = utc_now()
        row = OAuthToken(
            marketplace_account_id=account.id,
            provider=account.provider,
            environment=account.environment,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            scopes=list(scopes) if scopes else None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        await self.db.commit()

        logger.info(f"Stored refreshed access token for account {account.id} (expires_in={expires_in})")
        return row
