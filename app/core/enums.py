"""
Shared enums and constants used across the application.
"""

from enum import Enum

class MarketplaceProvider(str, Enum):
    EBAY = "ebay"


class MarketplaceEnvironment(str, Enum):
    PRODUCTION = "production"
    SANDBOX = "sandbox"

    @classmethod
    def coerce(cls, value) -> "MarketplaceEnvironment":
        # Anything that is not explicitly sandbox talks to production
        return cls.SANDBOX if str(value or "").lower() == cls.SANDBOX.value else cls.PRODUCTION


class MappingStatus(str, Enum):
    """Status of a remote SKU -> product mapping row"""
    LINKED = "linked"


class SkuMatchStatus(str, Enum):
    """Outcome of matching a free-text SKU against the catalog"""
    MATCHED = "matched"
    NOT_FOUND = "not_found"
    MULTIPLE_MATCHES = "multiple_matches"


class LinkStatus(str, Enum):
    """Per-item result of the link_by_sku mapping workflow"""
    OK = "ok"
    WOULD_LINK = "would_link"
    NOT_FOUND = "not_found"
    MULTIPLE_MATCHES = "multiple_matches"
    CONFLICT = "conflict"
    BAD_ITEM = "bad_item"
    ERROR = "error"
