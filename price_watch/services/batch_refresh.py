# price_watch/services/batch_refresh.py

"""Scheduled re-scrape of the least recently checked products."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from price_watch.config.settings import Settings
from price_watch.errors import PriceWatchError
from price_watch.filters.product_validator import ProductValidator
from price_watch.models.product import Product
from price_watch.services.price_reconciler import PriceReconciler
from price_watch.services.scrape_orchestrator import ScrapeOrchestrator
from price_watch.storage.product_store import ProductStore

logger = logging.getLogger("price_watch.refresh")


@dataclass
class RefreshItemResult:
    """Outcome for one product in a refresh batch."""

    product_id: int | None
    name: str
    success: bool
    price_changed: bool | None = None
    error: str | None = None
    estimated: bool = False
    target_reached: bool = False


@dataclass
class RefreshSummary:
    """Aggregated outcome of one batch."""

    updated: int = 0
    results: list[RefreshItemResult] = field(
        default_factory=lambda: list[RefreshItemResult]()
    )

    @property
    def failed(self) -> int:
        """Number of items that did not refresh."""
        return sum(1 for r in self.results if not r.success)


class BatchRefreshJob:
    """Refresh a bounded batch of stale products concurrently.

    Each product is scraped in a worker thread with its own
    orchestrator; at most ``max_workers`` scrapes run at once.  One
    item's failure never affects the others.
    """

    def __init__(
        self,
        store: ProductStore,
        orchestrator_factory: Callable[
            [], ScrapeOrchestrator
        ] = ScrapeOrchestrator,
        reconciler: PriceReconciler | None = None,
        batch_size: int | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.store = store
        self.orchestrator_factory = orchestrator_factory
        self.reconciler = reconciler or PriceReconciler()
        self.batch_size = batch_size or Settings.REFRESH_BATCH_SIZE
        self.max_workers = max_workers or Settings.REFRESH_MAX_WORKERS

    def _refresh_one(self, product: Product) -> RefreshItemResult:
        """Scrape, reconcile and persist a single product (blocking)."""
        product_id = product.id
        blocker = ProductValidator.refresh_blocker(product)
        if blocker is not None or product_id is None:
            blocker = blocker or "missing id"
            logger.warning(
                "Skipping invalid product %s '%s': %s",
                product_id,
                product.name,
                blocker,
            )
            return RefreshItemResult(
                product_id=product_id,
                name=product.name,
                success=False,
                error=f"invalid product: {blocker}",
            )

        try:
            result = self.orchestrator_factory().scrape_url(product.url)
            now = datetime.now()

            if result.was_estimated or not ProductValidator.validate_result(
                result
            ):
                # Keep the observed price; only record the attempt
                self.store.update_product(
                    product_id, {"last_checked": now}
                )
                reason = result.estimate_reason or "invalid scrape result"
                logger.warning(
                    "No observed price for product %d '%s': %s",
                    product_id,
                    product.name,
                    reason,
                )
                return RefreshItemResult(
                    product_id=product_id,
                    name=product.name,
                    success=False,
                    error=f"extraction failed: {reason}",
                    estimated=result.was_estimated,
                )

            update = self.reconciler.reconcile(
                product, result.current_price, now
            )
            self.store.apply_price_update(
                product_id,
                update.as_fields(),
                history_price=(
                    update.current_price if update.append_history else None
                ),
                checked_at=now,
            )
        except PriceWatchError as exc:
            logger.warning(
                "Refresh failed for product %d '%s': %s",
                product_id,
                product.name,
                exc,
            )
            return RefreshItemResult(
                product_id=product_id,
                name=product.name,
                success=False,
                error=str(exc),
            )

        logger.info(
            "Refreshed product %d '%s': %.2f -> %.2f%s",
            product_id,
            product.name,
            product.current_price,
            update.current_price,
            " (changed)" if update.append_history else "",
        )
        return RefreshItemResult(
            product_id=product_id,
            name=product.name,
            success=True,
            price_changed=update.append_history,
            target_reached=update.target_reached,
        )

    async def run(self) -> RefreshSummary:
        """Refresh up to ``batch_size`` stalest products."""
        products = await asyncio.to_thread(
            self.store.query_stale_products, self.batch_size
        )
        logger.info(
            "Refreshing %d product(s) with %d worker(s)",
            len(products),
            self.max_workers,
        )
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _guarded(product: Product) -> RefreshItemResult:
            async with semaphore:
                return await asyncio.to_thread(
                    self._refresh_one, product
                )

        outcomes = await asyncio.gather(
            *(_guarded(p) for p in products), return_exceptions=True
        )

        summary = RefreshSummary()
        for product, outcome in zip(products, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Unexpected error refreshing product %s: %s",
                    product.id,
                    outcome,
                    exc_info=outcome,
                )
                summary.results.append(
                    RefreshItemResult(
                        product_id=product.id,
                        name=product.name,
                        success=False,
                        error=f"unexpected error: {outcome}",
                    )
                )
                continue
            summary.results.append(outcome)
            if outcome.success:
                summary.updated += 1

        logger.info(
            "Refresh complete: %d updated, %d failed",
            summary.updated,
            summary.failed,
        )
        return summary


async def refresh_stale_products(
    store: ProductStore,
) -> RefreshSummary:
    """Run one refresh batch with default settings."""
    return await BatchRefreshJob(store).run()
