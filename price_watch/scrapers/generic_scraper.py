# price_watch/scrapers/generic_scraper.py

"""Direct-fetch extraction for stores without a dedicated scraper."""

from price_watch.models.scrape_result import ScrapeResult
from price_watch.scrapers.base_scraper import BaseScraper
from price_watch.scrapers.html_extractor import HtmlProductExtractor


class GenericPageScraper(BaseScraper):
    """Fetch a product page and run the generic HTML field strategies."""

    def __init__(self) -> None:
        super().__init__("generic", stage="direct_page")
        self.extractor = HtmlProductExtractor(self.selectors)

    def extract(
        self, url: str, store: str | None = None,
    ) -> ScrapeResult:
        """Fetch *url* and extract whatever fields the page exposes.

        Raises:
            TransientFetchError: the page could not be fetched.
        """
        html = self._get_html(url)
        result = self.extractor.extract(html, url, store)
        self.logger.info(
            "[generic] Extracted '%s' at %.2f from %s",
            result.name,
            result.current_price,
            url,
        )
        return result
