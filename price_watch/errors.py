# price_watch/errors.py

"""Exception hierarchy for the scraping and reconciliation pipeline."""

from price_watch.models.product import Product


class PriceWatchError(Exception):
    """Base class for all price_watch errors."""


class ScrapeError(PriceWatchError):
    """An extraction stage failed; the next fallback may still succeed."""

    def __init__(
        self, message: str, url: str = "", stage: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.stage = stage


class TransientFetchError(ScrapeError):
    """Network error, timeout or non-2xx status from an HTTP call."""


class MalformedResponseError(ScrapeError):
    """Non-JSON or schema-mismatched response from a remote service."""


class ExtractionIncompleteError(ScrapeError):
    """Every strategy ran without producing a valid name and price."""


class ValidationError(PriceWatchError):
    """Caller-supplied input is missing or unusable."""


class DuplicateProductError(PriceWatchError):
    """The user already monitors this product."""

    def __init__(self, message: str, existing: Product) -> None:
        super().__init__(message)
        self.existing = existing


class PersistenceError(PriceWatchError):
    """A storage read or write failed."""
