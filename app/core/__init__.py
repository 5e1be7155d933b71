"""
Core module exports.
"""
from .enums import (
    MarketplaceProvider,
    MarketplaceEnvironment,
    MappingStatus,
    SkuMatchStatus,
    LinkStatus,
)

from .exceptions import (
    BaseServiceError,
    PlatformServiceError,
    EbayServiceError,
    EbayAPIError,
    AccountAbortedError,
    MissingTokenError,
    NoAccessTokenError,
    CredentialsMissingError,
    RefreshTokenMissingError,
    TokenRefreshError,
    OrderFetchError,
)
