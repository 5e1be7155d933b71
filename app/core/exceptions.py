class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class EbayServiceError(PlatformServiceError):
    """Base exception for eBay-specific errors."""
    pass

class EbayAPIError(EbayServiceError):
    """Raised when eBay API calls fail."""
    pass

class AccountAbortedError(EbayServiceError):
    """Raised when processing must stop for one marketplace account.

    ``reason`` is the short code reported in the run summary.
    """
    reason = "aborted"

    def __init__(self, message: str = "", account_id=None):
        super().__init__(message or self.reason)
        self.account_id = account_id

class MissingTokenError(AccountAbortedError):
    """No OAuth token row exists for the account."""
    reason = "missing_token"

class NoAccessTokenError(AccountAbortedError):
    """The latest OAuth token row carries no access token."""
    reason = "no_access_token"

class CredentialsMissingError(AccountAbortedError):
    """The account has no client id/secret to refresh with."""
    reason = "cannot_refresh"

class RefreshTokenMissingError(AccountAbortedError):
    """The latest OAuth token row has no refresh token."""
    reason = "cannot_refresh"

class TokenRefreshError(AccountAbortedError, EbayAPIError):
    """Raised when the refresh_token exchange fails."""
    reason = "token_expired"

class OrderFetchError(AccountAbortedError, EbayAPIError):
    """Raised when an orders page cannot be fetched."""
    reason = "fetch_failed"

    def __init__(self, message: str = "", account_id=None, status_code=None):
        super().__init__(message, account_id=account_id)
        self.status_code = status_code
