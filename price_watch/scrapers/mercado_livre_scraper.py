# price_watch/scrapers/mercado_livre_scraper.py

"""Scraper for mercadolivre.com.br product pages and search API."""

import urllib.parse
from typing import Any, cast

from price_watch.errors import MalformedResponseError, TransientFetchError
from price_watch.filters.name_deriver import derive_name_from_url
from price_watch.models.scrape_result import ScrapeResult
from price_watch.scrapers.base_scraper import BaseScraper
from price_watch.scrapers.html_extractor import HtmlProductExtractor


class MercadoLivreScraper(BaseScraper):
    """Store-tuned extraction for Mercado Livre.

    Product pages render the price as an ``andes-money-amount``
    fraction/cents pair; the list price sits in the same markup
    wrapped in ``<s>``.  :meth:`extract` never raises: it is the last
    stage of the Mercado Livre chain, so any field it cannot read is
    replaced by a placeholder and the result is flagged
    ``was_estimated``.
    """

    STORE_LABEL = "Mercado Livre"

    def __init__(self) -> None:
        super().__init__("mercado_livre", stage="mercado_livre")
        self.extractor = HtmlProductExtractor(self.selectors)

    def _placeholder_name(self, url: str) -> str:
        """URL-derived name, or a store-labelled generic one."""
        name = derive_name_from_url(url)
        if name == self.settings.FALLBACK_PRODUCT_NAME:
            return f"{self.STORE_LABEL} product"
        return name

    def _placeholder(self, url: str, reason: str) -> ScrapeResult:
        """Synthetic result used when the page could not be fetched."""
        self.logger.warning(
            "[mercado_livre] Placeholder for %s: %s", url, reason
        )
        return ScrapeResult(
            name=self._placeholder_name(url),
            current_price=self.settings.PLACEHOLDER_PRICE,
            image_url=self.settings.PLACEHOLDER_IMAGE_URL,
            store=self.STORE_LABEL,
            url=url,
            was_estimated=True,
            estimate_reason=reason,
        )

    def extract(
        self, url: str, store: str | None = None,
    ) -> ScrapeResult:
        """Scrape a Mercado Livre product page; never raises."""
        try:
            html = self._get_html(url)
        except TransientFetchError as exc:
            return self._placeholder(url, f"page fetch failed: {exc}")

        result = self.extractor.extract(html, url, self.STORE_LABEL)

        missing: list[str] = []
        if not result.name.strip():
            result.name = self._placeholder_name(url)
            missing.append("name")
        if result.current_price <= 0:
            result.current_price = self.settings.PLACEHOLDER_PRICE
            missing.append("price")
        if "price" in missing:
            result.was_estimated = True
            result.estimate_reason = (
                f"missing from page: {', '.join(missing)}"
            )
            self.logger.warning(
                "[mercado_livre] %s for %s",
                result.estimate_reason,
                url,
            )
        else:
            self.logger.info(
                "[mercado_livre] Extracted '%s' at %.2f",
                result.name,
                result.current_price,
            )
        return result

    @staticmethod
    def _parse_hit(hit: dict[str, Any], fallback_url: str) -> ScrapeResult:
        """Parse a single search API hit into a ScrapeResult."""
        original: Any = hit.get("original_price")
        previous = (
            float(original)
            if isinstance(original, (int, float)) and original > 0
            else None
        )
        return ScrapeResult(
            name=str(hit.get("title") or ""),
            current_price=float(hit.get("price") or 0),
            previous_price=previous,
            image_url=str(hit.get("thumbnail") or ""),
            store=MercadoLivreScraper.STORE_LABEL,
            url=str(hit.get("permalink") or fallback_url),
        )

    def search(self, term: str) -> ScrapeResult:
        """Return the first hit of the public search API for *term*.

        Raises:
            TransientFetchError: the API could not be reached.
            MalformedResponseError: the body is not the expected JSON.
        """
        url = self.settings.MERCADO_LIVRE_SEARCH_API.format(
            query=urllib.parse.quote_plus(term)
        )
        data: Any = self._fetch_json(url, stage="search_api")

        results: Any = (
            cast(dict[str, Any], data).get("results")
            if isinstance(data, dict)
            else None
        )
        if not isinstance(results, list) or not results:
            raise MalformedResponseError(
                f"Search API returned no results for '{term}'",
                url=url,
                stage="search_api",
            )
        first: Any = cast(list[Any], results)[0]
        if not isinstance(first, dict):
            raise MalformedResponseError(
                "Search API hit is not an object",
                url=url,
                stage="search_api",
            )
        try:
            return self._parse_hit(cast(dict[str, Any], first), url)
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError(
                f"Search API hit has an unreadable price: {exc}",
                url=url,
                stage="search_api",
            ) from exc
