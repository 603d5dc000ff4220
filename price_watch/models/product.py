# price_watch/models/product.py

"""Monitored product model for inter-module data flow."""

from dataclasses import dataclass, field
from datetime import datetime

from price_watch.models.price_history import PriceHistoryEntry


def is_on_sale(
    current_price: float, previous_price: float | None,
) -> bool:
    """``current < previous``; an absent previous price counts as infinity."""
    reference = (
        previous_price if previous_price is not None else float("inf")
    )
    return current_price < reference


def price_change_percent(
    current_price: float, previous_price: float | None,
) -> float:
    """Percentage change from *previous_price*; 0 without one."""
    if not previous_price:
        return 0.0
    return round(
        (current_price - previous_price) / previous_price * 100, 2
    )


@dataclass
class Product:
    """A product monitored by one user.

    ``is_estimated`` marks a product whose stored price is a
    placeholder rather than an observed one; it clears on the first
    refresh that observes a real price.
    """

    name: str
    url: str
    current_price: float
    user_id: str = ""
    store: str = "Unknown"
    previous_price: float | None = None
    image_url: str = ""
    is_on_sale: bool = False
    is_estimated: bool = False
    price_target: float | None = None
    last_checked: datetime | None = None
    id: int | None = None
    price_history: list[PriceHistoryEntry] = field(
        default_factory=lambda: list[PriceHistoryEntry]()
    )

    @property
    def price_change(self) -> float:
        """Percentage change from previous to current price."""
        if self.is_estimated:
            return 0.0
        return price_change_percent(
            self.current_price, self.previous_price
        )

    @property
    def target_reached(self) -> bool:
        """True when a target is set and the price is at or below it."""
        return (
            not self.is_estimated
            and self.price_target is not None
            and self.current_price <= self.price_target
        )
