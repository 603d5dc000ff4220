# price_watch/filters/product_validator.py

"""Validation of caller input, scrape results and stored products."""

import logging

from price_watch.errors import ValidationError
from price_watch.models.product import Product
from price_watch.models.scrape_result import ScrapeResult

logger = logging.getLogger("price_watch.filters")


class ProductValidator:
    """Check the essential fields at each boundary of the pipeline."""

    @staticmethod
    def validate_add_request(
        url: str | None,
        search_term: str | None,
        store: str | None,
    ) -> None:
        """Require either a URL or a search term together with a store.

        Raises:
            ValidationError: neither form of input was supplied.
        """
        if url and url.strip():
            if not url.strip().lower().startswith(
                ("http://", "https://")
            ):
                raise ValidationError(
                    f"URL must be absolute http(s): {url!r}"
                )
            return
        if (
            search_term
            and search_term.strip()
            and store
            and store.strip()
        ):
            return
        raise ValidationError(
            "URL or search term with store is required"
        )

    @staticmethod
    def validate_result(result: ScrapeResult) -> bool:
        """Return True when the result has a name and a positive price."""
        if not result.name.strip():
            logger.debug(
                "Rejected scrape result with empty name (url=%s)",
                result.url,
            )
            return False
        if result.current_price <= 0:
            logger.debug(
                "Rejected scrape result with zero/negative "
                "price (name=%s, url=%s)",
                result.name,
                result.url,
            )
            return False
        return True

    @staticmethod
    def refresh_blocker(product: Product) -> str | None:
        """Return why *product* cannot be refreshed, or None if it can."""
        if product.id is None:
            return "missing id"
        if not product.url.strip():
            return "missing url"
        if product.current_price <= 0:
            return "non-positive current price"
        return None

    @staticmethod
    def validate_price_target(target: float | None) -> None:
        """Require a positive target; ``None`` clears it."""
        if target is not None and target <= 0:
            raise ValidationError(
                f"Price target must be positive, got {target}"
            )
