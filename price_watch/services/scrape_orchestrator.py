# price_watch/services/scrape_orchestrator.py

"""Runs per-store extraction fallback chains and guarantees a result."""

import importlib
import logging
import urllib.parse
from typing import Any

from price_watch.config.settings import Settings
from price_watch.errors import (
    ExtractionIncompleteError,
    ScrapeError,
    ValidationError,
)
from price_watch.filters.name_deriver import derive_name_from_url
from price_watch.filters.product_validator import ProductValidator
from price_watch.filters.store_identifier import (
    find_search_source,
    identify_store,
)
from price_watch.models.scrape_result import ScrapeResult

logger = logging.getLogger("price_watch.orchestrator")


def _load_strategy_class(dotted_path: str) -> type[Any]:
    """Dynamically import a strategy class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


class ScrapeOrchestrator:
    """Choose, run and validate extraction strategies for one request.

    Strategy order per store lives in ``Settings.STRATEGY_CHAINS``.
    A stage's result is accepted when it is valid and observed; an
    estimated (placeholder) result is only accepted from the final
    stage.  When the chain is exhausted the orchestrator returns an
    explicit placeholder flagged ``was_estimated``, so callers always
    get a valid result and can tell real observations apart.
    """

    def __init__(
        self, strategies: dict[str, Any] | None = None,
    ) -> None:
        self.settings = Settings()
        self._strategies: dict[str, Any] = dict(strategies or {})

    # ── Strategy registry ────────────────────────────────

    def _get_strategy(self, name: str) -> Any:
        """Return the strategy registered as *name*, creating it once."""
        if name not in self._strategies:
            dotted = self.settings.EXTRACTION_STRATEGIES[name]
            self._strategies[name] = _load_strategy_class(dotted)()
        return self._strategies[name]

    def chain_for(self, store: str | None) -> list[str]:
        """Ordered strategy names for *store*."""
        chains = self.settings.STRATEGY_CHAINS
        if store and store in chains:
            return chains[store]
        return chains["default"]

    # ── Placeholders ─────────────────────────────────────

    def _placeholder(
        self,
        name: str,
        store: str | None,
        url: str,
        reason: str,
    ) -> ScrapeResult:
        """Build the explicit estimated result returned on total failure."""
        return ScrapeResult(
            name=name,
            current_price=self.settings.PLACEHOLDER_PRICE,
            image_url=self.settings.PLACEHOLDER_IMAGE_URL,
            store=store or self.settings.UNKNOWN_STORE,
            url=url,
            was_estimated=True,
            estimate_reason=reason,
        )

    # ── URL path ─────────────────────────────────────────

    def _run_chain(
        self,
        url: str,
        store: str | None,
        chain: list[str],
    ) -> ScrapeResult:
        """Try each stage of *chain* in order.

        Raises:
            ExtractionIncompleteError: no stage produced an
                acceptable result.
        """
        last_index = len(chain) - 1
        for index, name in enumerate(chain):
            stage = f"{index + 1}/{len(chain)} {name}"
            strategy = self._get_strategy(name)
            try:
                result: ScrapeResult = strategy.extract(url, store)
            except ScrapeError as exc:
                logger.warning(
                    "[%s] stage %s failed for %s: %s at %s: %s",
                    store or self.settings.UNKNOWN_STORE,
                    stage,
                    url,
                    type(exc).__name__,
                    exc.stage or name,
                    exc,
                )
                continue
            except Exception as exc:
                logger.error(
                    "[%s] stage %s crashed for %s: %s",
                    store or self.settings.UNKNOWN_STORE,
                    stage,
                    url,
                    exc,
                    exc_info=True,
                )
                continue

            if not ProductValidator.validate_result(result):
                logger.warning(
                    "[%s] stage %s returned invalid data for %s "
                    "(name=%r, price=%.2f)",
                    store or self.settings.UNKNOWN_STORE,
                    stage,
                    url,
                    result.name,
                    result.current_price,
                )
                continue

            if result.was_estimated and index < last_index:
                logger.warning(
                    "[%s] stage %s only produced an estimate for %s "
                    "(%s), trying next stage",
                    store or self.settings.UNKNOWN_STORE,
                    stage,
                    url,
                    result.estimate_reason,
                )
                continue

            result.url = result.url or url
            result.store = (
                store or result.store or self.settings.UNKNOWN_STORE
            )
            logger.info(
                "[%s] stage %s succeeded for %s: '%s' at %.2f%s",
                result.store,
                stage,
                url,
                result.name,
                result.current_price,
                " (estimated)" if result.was_estimated else "",
            )
            return result

        raise ExtractionIncompleteError(
            f"All {len(chain)} stages failed",
            url=url,
            stage=" > ".join(chain),
        )

    def scrape_url(self, url: str) -> ScrapeResult:
        """Scrape a product URL through its store's fallback chain."""
        if not url or not url.strip():
            raise ValidationError("URL is required")
        url = url.strip()
        store = identify_store(url)
        chain = self.chain_for(store)
        logger.info(
            "Scraping %s (store=%s, chain=%s)",
            url,
            store or self.settings.UNKNOWN_STORE,
            " > ".join(chain),
        )
        try:
            return self._run_chain(url, store, chain)
        except ExtractionIncompleteError as exc:
            logger.error(
                "[%s] Extraction incomplete for %s (%s), "
                "returning placeholder",
                store or self.settings.UNKNOWN_STORE,
                url,
                exc,
            )
            return self._placeholder(
                derive_name_from_url(url), store, url, str(exc),
            )

    # ── Search path ──────────────────────────────────────

    def search_product(
        self, search_term: str, store_id: str,
    ) -> ScrapeResult:
        """Find a product by search term in one store.

        Raises:
            ValidationError: empty term or unsupported store id.
        """
        term = (search_term or "").strip()
        if not term:
            raise ValidationError("Search term is required")
        source = find_search_source(store_id)
        if source is None:
            valid = ", ".join(
                s["id"] for s in self.settings.SEARCH_SOURCES
            )
            raise ValidationError(
                f"Unsupported store for search: {store_id!r} "
                f"(available: {valid})"
            )

        label = source["label"]
        search_url = source["search_url"].format(
            query=urllib.parse.quote_plus(term)
        )
        logger.info(
            "Searching '%s' in %s via %s", term, label, search_url
        )

        remote = self._get_strategy("remote")
        try:
            result: ScrapeResult = remote.extract(
                search_url, label, query=term
            )
            if ProductValidator.validate_result(result):
                result.store = label
                logger.info(
                    "[%s] remote search succeeded: '%s' at %.2f",
                    label,
                    result.name,
                    result.current_price,
                )
                return result
            logger.warning(
                "[%s] remote search returned invalid data for '%s'",
                label,
                term,
            )
        except ScrapeError as exc:
            logger.warning(
                "[%s] remote search failed for '%s': %s",
                label,
                term,
                exc,
            )

        api_name = source.get("search_api")
        if api_name:
            try:
                result = self._get_strategy(api_name).search(term)
                if ProductValidator.validate_result(result):
                    logger.info(
                        "[%s] store search API succeeded: '%s' "
                        "at %.2f",
                        label,
                        result.name,
                        result.current_price,
                    )
                    return result
                logger.warning(
                    "[%s] store search API returned invalid data "
                    "for '%s'",
                    label,
                    term,
                )
            except ScrapeError as exc:
                logger.warning(
                    "[%s] store search API failed for '%s': %s",
                    label,
                    term,
                    exc,
                )

        logger.error(
            "[%s] All search paths failed for '%s', "
            "returning placeholder",
            label,
            term,
        )
        return self._placeholder(
            f"{term} - {label}",
            label,
            search_url,
            "all search paths failed",
        )

    # ── Entry point ──────────────────────────────────────

    def scrape(
        self,
        url: str | None = None,
        search_term: str | None = None,
        store: str | None = None,
    ) -> ScrapeResult:
        """Route to the URL path or the search path."""
        ProductValidator.validate_add_request(url, search_term, store)
        if url and url.strip():
            return self.scrape_url(url)
        return self.search_product(search_term or "", store or "")
