# price_watch/filters/duplicate_guard.py

"""Detect products a user already monitors before adding them again."""

import logging
import re

from price_watch.models.product import Product

logger = logging.getLogger("price_watch.filters")


class DuplicateGuard:
    """Match a candidate against a user's products by URL or fuzzy name."""

    # Query params and fragments don't affect product identity
    _STRIP_PARAMS_RE = re.compile(
        r"[?#].*$"
    )

    @staticmethod
    def _normalise_url(url: str) -> str:
        """Normalise a product URL for comparison.

        Strips query parameters, fragments, trailing slashes,
        and lowercases the result.
        """
        if not url:
            return ""
        cleaned = DuplicateGuard._STRIP_PARAMS_RE.sub("", url)
        return cleaned.rstrip("/").lower()

    @staticmethod
    def _normalise_name(name: str) -> str:
        """Lowercase, drop punctuation and collapse whitespace."""
        lowered = name.lower()
        alnum_only = re.sub(r"[^\w\s]", "", lowered)
        return " ".join(alnum_only.split())

    @staticmethod
    def find_duplicate(
        existing: list[Product],
        name: str,
        url: str,
    ) -> Product | None:
        """Return the product in *existing* that the candidate duplicates.

        *existing* must already be scoped to one user.  A product is a
        duplicate when:

        1. its normalised URL equals the candidate's, or
        2. its normalised name contains the candidate's normalised
           name (case-insensitive substring).

        The name rule is deliberately permissive: adding "iPhone 13"
        while "Apple iPhone 13 128GB" is monitored is rejected.
        """
        cand_url = DuplicateGuard._normalise_url(url)
        cand_name = DuplicateGuard._normalise_name(name)

        for product in existing:
            if cand_url and (
                DuplicateGuard._normalise_url(product.url) == cand_url
            ):
                logger.info(
                    "Duplicate by URL: %s (product id=%s)",
                    url,
                    product.id,
                )
                return product
            if cand_name and cand_name in (
                DuplicateGuard._normalise_name(product.name)
            ):
                logger.info(
                    "Duplicate by name: '%s' matches '%s' "
                    "(product id=%s)",
                    name,
                    product.name,
                    product.id,
                )
                return product
        return None
