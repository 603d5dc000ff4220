# price_watch/services/price_reconciler.py

"""Turn a freshly scraped price into a product update."""

import logging
from dataclasses import dataclass
from datetime import datetime

from price_watch.config.settings import Settings
from price_watch.models.product import (
    Product,
    is_on_sale,
    price_change_percent,
)

logger = logging.getLogger("price_watch.reconciler")


@dataclass
class PriceUpdate:
    """Fields to write back after one refresh, plus the history decision."""

    current_price: float
    previous_price: float | None
    is_on_sale: bool
    last_checked: datetime
    append_history: bool
    price_change: float = 0.0
    target_reached: bool = False

    def as_fields(self) -> dict[str, object]:
        """Columns for ``ProductStore.apply_price_update``."""
        return {
            "current_price": self.current_price,
            "previous_price": self.previous_price,
            "is_on_sale": self.is_on_sale,
            "last_checked": self.last_checked,
            "is_estimated": False,
        }


class PriceReconciler:
    """Decide how a product changes when a new price is observed."""

    def __init__(self, epsilon: float | None = None) -> None:
        self.epsilon = (
            Settings.PRICE_EPSILON if epsilon is None else epsilon
        )

    def price_moved(self, old_price: float, new_price: float) -> bool:
        """True when the difference exceeds floating-point noise."""
        return abs(old_price - new_price) > self.epsilon

    def reconcile(
        self,
        product: Product,
        new_price: float,
        checked_at: datetime | None = None,
    ) -> PriceUpdate:
        """Compute the update for *product* given *new_price*.

        The old current price becomes the previous price only when
        the price actually moved; otherwise the stored previous price
        is kept and no history entry is due.

        An estimated product's stored price is a placeholder: its
        previous price is left as it was and the first observed price
        always starts the history.
        """
        now = checked_at or datetime.now()
        if product.is_estimated:
            moved = True
            previous = product.previous_price
        else:
            moved = self.price_moved(product.current_price, new_price)
            previous = (
                product.current_price
                if moved
                else product.previous_price
            )
        update = PriceUpdate(
            current_price=new_price,
            previous_price=previous,
            is_on_sale=is_on_sale(new_price, previous),
            last_checked=now,
            append_history=moved,
            price_change=price_change_percent(new_price, previous),
            target_reached=(
                product.price_target is not None
                and new_price <= product.price_target
            ),
        )
        logger.debug(
            "Reconciled product %s: %.2f -> %.2f (moved=%s, "
            "on_sale=%s)",
            product.id,
            product.current_price,
            new_price,
            moved,
            update.is_on_sale,
        )
        return update
