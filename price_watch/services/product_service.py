# price_watch/services/product_service.py

"""Add, retarget, remove and list monitored products."""

import logging
from dataclasses import dataclass
from datetime import datetime

from price_watch.config.settings import Settings
from price_watch.errors import (
    DuplicateProductError,
    PersistenceError,
    ValidationError,
)
from price_watch.filters.product_validator import ProductValidator
from price_watch.filters.store_identifier import identify_store
from price_watch.models.product import Product, is_on_sale
from price_watch.services.scrape_orchestrator import ScrapeOrchestrator
from price_watch.storage.product_store import ProductStore

logger = logging.getLogger("price_watch.service")


@dataclass
class AddProductResult:
    """Outcome of one add-product request."""

    success: bool
    product: Product | None = None
    error: str | None = None
    conflict: Product | None = None
    estimated: bool = False


class ProductService:
    """User-facing operations over the store and the scrape pipeline."""

    def __init__(
        self,
        store: ProductStore,
        orchestrator: ScrapeOrchestrator | None = None,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator or ScrapeOrchestrator()

    def _insert_with_history(
        self, product: Product, checked_at: datetime,
    ) -> Product:
        """Insert *product* and seed its first history entry.

        A product is never left without its seed entry: when seeding
        fails the inserted row is deleted again.  Estimated products
        get no entry; history holds observed prices only.
        """
        product_id = self.store.insert_product(product)
        if product.is_estimated:
            product.id = product_id
            return product
        try:
            self.store.append_price_history(
                product_id, product.current_price, checked_at
            )
        except PersistenceError:
            logger.error(
                "Seeding history failed for product %d, rolling back",
                product_id,
            )
            self.store.delete_product(product_id)
            raise
        product.id = product_id
        product.price_history = self.store.get_price_history(
            product_id
        )
        return product

    def scrape_and_add_product(
        self,
        user_id: str,
        url: str | None = None,
        search_term: str | None = None,
        store: str | None = None,
    ) -> AddProductResult:
        """Scrape a product and start monitoring it for *user_id*.

        Validation errors, duplicates and storage failures are returned
        as an unsuccessful result rather than raised.
        """
        try:
            if not user_id or not user_id.strip():
                raise ValidationError("User id is required")
            result = self.orchestrator.scrape(url, search_term, store)

            product_url = result.url or (url or "").strip()
            store_label = (
                identify_store(product_url)
                or result.store
                or Settings.UNKNOWN_STORE
            )

            existing = self.store.find_possible_duplicate(
                user_id, result.name, product_url
            )
            if existing is not None:
                raise DuplicateProductError(
                    f"'{result.name}' is already monitored "
                    f"as '{existing.name}'",
                    existing=existing,
                )

            now = datetime.now()
            product = Product(
                name=result.name,
                url=product_url,
                current_price=result.current_price,
                user_id=user_id,
                store=store_label,
                previous_price=result.previous_price,
                image_url=result.image_url,
                is_on_sale=(
                    not result.was_estimated
                    and is_on_sale(
                        result.current_price, result.previous_price
                    )
                ),
                is_estimated=result.was_estimated,
                last_checked=now,
            )
            product = self._insert_with_history(product, now)
        except DuplicateProductError as exc:
            logger.info("Rejected duplicate add: %s", exc)
            return AddProductResult(
                success=False, error=str(exc), conflict=exc.existing,
            )
        except (ValidationError, PersistenceError) as exc:
            logger.warning("Add product failed: %s", exc)
            return AddProductResult(success=False, error=str(exc))

        if result.was_estimated:
            logger.warning(
                "Added product %d '%s' with estimated data (%s)",
                product.id,
                product.name,
                result.estimate_reason,
            )
        else:
            logger.info(
                "Added product %d '%s' at %.2f (%s)",
                product.id,
                product.name,
                product.current_price,
                product.store,
            )
        return AddProductResult(
            success=True,
            product=product,
            estimated=result.was_estimated,
        )

    def set_price_target(
        self, product_id: int, target: float | None,
    ) -> Product:
        """Set or clear (``None``) a product's target price.

        Raises:
            ValidationError: non-positive target.
            PersistenceError: unknown product or storage failure.
        """
        ProductValidator.validate_price_target(target)
        self.store.update_product(product_id, {"price_target": target})
        product = self.store.get_product(product_id)
        if product is None:
            raise PersistenceError(f"Product {product_id} not found")
        logger.info(
            "Price target for product %d set to %s", product_id, target
        )
        return product

    def remove_product(self, product_id: int) -> None:
        """Stop monitoring a product; its history goes with it."""
        self.store.delete_product(product_id)

    def list_products(self, user_id: str) -> list[Product]:
        """All products monitored by *user_id*, with history."""
        return self.store.query_products_by_user(user_id)
