# price_watch/scrapers/html_extractor.py

"""Field-by-field product extraction from raw product page HTML."""

import json
import logging
import re
from typing import Any, cast

from bs4 import BeautifulSoup, Tag

from price_watch.config.settings import Settings
from price_watch.filters.name_deriver import derive_name_from_url
from price_watch.filters.price_parser import parse_price
from price_watch.models.scrape_result import ScrapeResult

logger = logging.getLogger("price_watch.extractor")

_TITLE_SEPARATORS: tuple[str, ...] = (" - ", " | ", " – ")

# Raw-HTML price patterns, tried in order after markup and JSON-LD
_CURRENCY_PRICE_RE = re.compile(
    r"R\$\s*(?:&nbsp;)?\s*([\d.,]+)", re.IGNORECASE
)
_CLASS_PRICE_RE = re.compile(
    r'class="[^"]*price[^"]*"[^>]*>\s*(?:R\$\s*)?([\d.,]+)',
    re.IGNORECASE,
)
_DATA_PRICE_RE = re.compile(
    r'data-price="([\d.,]+)"', re.IGNORECASE
)
# "de R$ 699,90 por R$ 549,90"
_FROM_PRICE_RE = re.compile(
    r"\bde\s*:?\s*R\$\s*(?:&nbsp;)?\s*([\d.,]+)", re.IGNORECASE
)
_SALE_PRICE_RE = re.compile(
    r"\bpor\s*:?\s*R\$\s*(?:&nbsp;)?\s*([\d.,]+)", re.IGNORECASE
)
# Text right before an "R$" amount that marks it as a list price
# or an instalment ("12x de R$ 45,82")
_FROM_PREFIX_RE = re.compile(r"\bde\s*:?\s*$", re.IGNORECASE)

_STRUCK_TAGS: list[str] = ["s", "del"]


class HtmlProductExtractor:
    """Recover name, prices and image from product page HTML.

    Each field is resolved independently by walking its own chain of
    strategies: store markup from *selectors*, JSON-LD product
    metadata, then generic regex patterns over the raw HTML.  Missing
    fields come back empty or zero; judging validity is the caller's
    job.

    Recognised selector keys: ``name``, ``price``, ``price_fraction``,
    ``price_cents`` and ``image``.
    """

    def __init__(
        self,
        selectors: dict[str, str] | None = None,
        synthesize_previous: bool | None = None,
    ) -> None:
        self.selectors: dict[str, str] = selectors or {}
        self.synthesize_previous: bool = (
            Settings.SYNTHESIZE_PREVIOUS_PRICE
            if synthesize_previous is None
            else synthesize_previous
        )

    def extract(
        self,
        html: str,
        url: str,
        store: str | None = None,
    ) -> ScrapeResult:
        """Extract a ScrapeResult from *html* fetched from *url*."""
        soup = BeautifulSoup(html, "lxml")
        metadata = self._find_product_metadata(soup)

        name = self._extract_name(soup, metadata, url)
        current_price = self._extract_current_price(
            soup, html, metadata
        )
        previous_price, previous_estimated = (
            self._extract_previous_price(soup, html, current_price)
        )
        image_url = self._extract_image(soup, metadata)

        logger.debug(
            "Extracted from %s: name=%r price=%.2f previous=%s "
            "image=%s",
            url,
            name,
            current_price,
            previous_price,
            image_url,
        )
        return ScrapeResult(
            name=name,
            current_price=current_price,
            previous_price=previous_price,
            image_url=image_url,
            store=store or "",
            url=url,
            previous_price_estimated=previous_estimated,
        )

    # ------------------------------------------------------------------
    # JSON-LD product metadata
    # ------------------------------------------------------------------

    @staticmethod
    def _pick_product_node(data: Any) -> dict[str, Any] | None:
        """Pick the Product node out of a decoded JSON-LD document."""
        candidates: list[Any] = []
        if isinstance(data, list):
            candidates = cast(list[Any], data)
        elif isinstance(data, dict):
            doc = cast(dict[str, Any], data)
            candidates = [doc]
            graph = doc.get("@graph")
            if isinstance(graph, list):
                candidates.extend(cast(list[Any], graph))

        with_offers: dict[str, Any] | None = None
        for node in candidates:
            if not isinstance(node, dict):
                continue
            item = cast(dict[str, Any], node)
            node_type = item.get("@type", "")
            types = (
                cast(list[Any], node_type)
                if isinstance(node_type, list)
                else [node_type]
            )
            if "Product" in types:
                return item
            if with_offers is None and "offers" in item:
                with_offers = item
        return with_offers

    @staticmethod
    def _find_product_metadata(
        soup: BeautifulSoup,
    ) -> dict[str, Any]:
        """Return the first JSON-LD product node on the page, or {}."""
        for script in soup.find_all(
            "script", attrs={"type": "application/ld+json"}
        ):
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data: Any = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                logger.debug("Skipping undecodable JSON-LD block")
                continue
            node = HtmlProductExtractor._pick_product_node(data)
            if node:
                return node
        return {}

    # ------------------------------------------------------------------
    # Name
    # ------------------------------------------------------------------

    @staticmethod
    def _strip_site_suffix(title: str) -> str:
        """Drop the trailing site name after the last separator."""
        cut = max(title.rfind(sep) for sep in _TITLE_SEPARATORS)
        if cut > 0:
            title = title[:cut]
        return " ".join(title.split())

    def _extract_name(
        self,
        soup: BeautifulSoup,
        metadata: dict[str, Any],
        url: str,
    ) -> str:
        """Title tag, then JSON-LD, then store markup, then the URL."""
        title_tag = soup.find("title")
        if title_tag is not None:
            title = self._strip_site_suffix(
                title_tag.get_text(strip=True)
            )
            if title:
                return title

        for key in ("name", "title"):
            value = metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

        name_sel = self.selectors.get("name", "")
        if name_sel:
            name_el = soup.select_one(name_sel)
            if name_el is not None:
                text = name_el.get_text(" ", strip=True)
                if text:
                    return text

        return derive_name_from_url(url)

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def _price_from_markup(
        self, soup: BeautifulSoup, struck: bool,
    ) -> float | None:
        """Read a store-tagged price inside or outside <s>/<del>.

        A ``price_fraction`` element is summed with the
        ``price_cents`` element sharing its parent.  For current
        prices a single ``price`` element (``content`` attribute or
        text) is also accepted.
        """
        fraction_sel = self.selectors.get("price_fraction", "")
        cents_sel = self.selectors.get("price_cents", "")
        if fraction_sel:
            for fraction_el in soup.select(fraction_sel):
                in_struck = (
                    fraction_el.find_parent(_STRUCK_TAGS) is not None
                )
                if in_struck != struck:
                    continue
                fraction = parse_price(
                    fraction_el.get_text(strip=True)
                )
                if not fraction:
                    continue
                cents = 0
                parent = fraction_el.parent
                if cents_sel and isinstance(parent, Tag):
                    cents_el = parent.select_one(cents_sel)
                    if cents_el is not None:
                        digits = re.sub(
                            r"\D", "", cents_el.get_text()
                        )[:2]
                        if digits:
                            cents = int(digits.ljust(2, "0"))
                return round(fraction + cents / 100, 2)

        price_sel = self.selectors.get("price", "")
        if price_sel and not struck:
            for price_el in soup.select(price_sel):
                if price_el.find_parent(_STRUCK_TAGS) is not None:
                    continue
                raw = price_el.get("content") or price_el.get_text(
                    strip=True
                )
                price = parse_price(str(raw))
                if price:
                    return price
        return None

    @staticmethod
    def _price_from_metadata(
        metadata: dict[str, Any],
    ) -> float | None:
        """Read ``offers.price`` from JSON-LD metadata."""
        offers: Any = metadata.get("offers")
        if isinstance(offers, list):
            offer_list = cast(list[Any], offers)
            offers = offer_list[0] if offer_list else None
        if not isinstance(offers, dict):
            return None
        offer = cast(dict[str, Any], offers)
        raw: Any = offer.get("price") or offer.get("lowPrice")
        if isinstance(raw, bool) or raw is None:
            return None
        if isinstance(raw, (int, float)):
            return float(raw) if raw > 0 else None
        return parse_price(str(raw))

    @staticmethod
    def _price_from_pattern(
        html: str, pattern: re.Pattern[str],
    ) -> float | None:
        """Return the first positive price captured by *pattern*."""
        for match in pattern.finditer(html):
            price = parse_price(match.group(1))
            if price:
                return price
        return None

    @staticmethod
    def _first_unprefixed_price(html: str) -> float | None:
        """First "R$" amount not introduced by "de".

        "de R$ X" is the list price (or an instalment) on Brazilian
        pages, never the price being charged.
        """
        for match in _CURRENCY_PRICE_RE.finditer(html):
            before = html[max(0, match.start() - 40):match.start()]
            before = re.sub(r"<[^>]*>|&nbsp;", " ", before)
            if _FROM_PREFIX_RE.search(before):
                continue
            price = parse_price(match.group(1))
            if price:
                return price
        return None

    def _extract_current_price(
        self,
        soup: BeautifulSoup,
        html: str,
        metadata: dict[str, Any],
    ) -> float:
        """Markup, then JSON-LD, then regex patterns; 0.0 if none hit."""
        price = self._price_from_markup(soup, struck=False)
        if price:
            logger.debug("Current price from store markup")
            return price

        price = self._price_from_metadata(metadata)
        if price:
            logger.debug("Current price from JSON-LD offers")
            return price

        price = self._price_from_pattern(html, _SALE_PRICE_RE)
        if price:
            logger.debug('Current price from "por R$" text')
            return price

        price = self._first_unprefixed_price(html)
        if price:
            logger.debug('Current price from "R$" text')
            return price

        for pattern in (_CLASS_PRICE_RE, _DATA_PRICE_RE):
            price = self._price_from_pattern(html, pattern)
            if price:
                logger.debug(
                    "Current price from pattern %s", pattern.pattern
                )
                return price

        logger.debug("No current price found")
        return 0.0

    def _extract_previous_price(
        self,
        soup: BeautifulSoup,
        html: str,
        current_price: float,
    ) -> tuple[float | None, bool]:
        """Return the list price and whether it was synthesised."""
        price = self._price_from_markup(soup, struck=True)
        if price:
            return price, False

        for struck_el in soup.find_all(_STRUCK_TAGS):
            price = parse_price(struck_el.get_text(" ", strip=True))
            if price:
                return price, False

        # Only a "de R$" amount above the current price is a list
        # price; smaller ones are instalments
        for match in _FROM_PRICE_RE.finditer(html):
            price = parse_price(match.group(1))
            if price and price > current_price:
                return price, False

        if self.synthesize_previous and current_price > 0:
            estimate = round(
                current_price * Settings.ESTIMATED_PREVIOUS_MARKUP, 2
            )
            logger.info(
                "Synthesised display-only previous price %.2f "
                "from current %.2f",
                estimate,
                current_price,
            )
            return estimate, True
        return None, False

    # ------------------------------------------------------------------
    # Image
    # ------------------------------------------------------------------

    def _extract_image(
        self,
        soup: BeautifulSoup,
        metadata: dict[str, Any],
    ) -> str:
        """Zoom image, then product-image markup, then JSON-LD."""
        zoom_el = soup.find("img", attrs={"data-zoom": True})
        if isinstance(zoom_el, Tag):
            zoom = zoom_el.get("data-zoom")
            if zoom:
                return str(zoom)

        image_sel = self.selectors.get("image", "")
        if image_sel:
            img_el = soup.select_one(image_sel)
            if img_el is not None:
                src = img_el.get("data-src") or img_el.get("src")
                if src:
                    return str(src)

        image: Any = metadata.get("image")
        if isinstance(image, list):
            images = cast(list[Any], image)
            image = images[0] if images else None
        if isinstance(image, dict):
            image = cast(dict[str, Any], image).get("url")
        if isinstance(image, str) and image.strip():
            return image.strip()

        return Settings.PLACEHOLDER_IMAGE_URL
