# price_watch/models/price_history.py

"""Price history entry model for the per-product price timeline."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PriceHistoryEntry:
    """A single observed price for a product at a point in time."""

    product_id: int
    price: float
    checked_at: datetime
