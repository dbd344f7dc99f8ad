"""Errors raised by the marketplace consumer library"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for marketplace and offering access failures"""


class AuthenticationError(MarketplaceError):
    """The marketplace rejected the consumer credentials"""


class NotAuthenticatedError(MarketplaceError):
    """A marketplace call was made before authenticate()"""


class HttpError(MarketplaceError):
    """An HTTP call answered with an error status"""

    def __init__(self, url: str, status_code: int, body: str = ""):
        self.url = url
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code} from {url}: {body[:200]}")


class IncompleteOfferingQueryError(MarketplaceError):
    pass


class AccessToNonActivatedOfferingError(MarketplaceError):
    pass


class AccessToNonSubscribedOfferingError(MarketplaceError):
    pass


class FeedError(Exception):
    """Base class for continuous feed control errors"""


class ConfigurationError(FeedError):
    pass


class InvalidFeedStateError(FeedError):
    pass


class UnknownFeedError(FeedError):
    pass
