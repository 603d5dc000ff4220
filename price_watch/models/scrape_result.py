# price_watch/models/scrape_result.py

"""Canonical output of every extraction strategy."""

from dataclasses import dataclass


@dataclass
class ScrapeResult:
    """Product data recovered from one scrape.

    ``was_estimated`` marks placeholder data synthesised after real
    extraction failed; ``estimate_reason`` says which failure led to
    it.  ``previous_price_estimated`` marks a previous price computed
    from a fixed markup instead of read from the page.
    """

    name: str
    current_price: float
    previous_price: float | None = None
    image_url: str = ""
    store: str = ""
    url: str = ""
    was_estimated: bool = False
    estimate_reason: str = ""
    previous_price_estimated: bool = False

    @property
    def is_valid(self) -> bool:
        """Valid results have a non-empty name and a positive price."""
        return bool(self.name.strip()) and self.current_price > 0
