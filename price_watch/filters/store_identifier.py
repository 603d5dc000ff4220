# price_watch/filters/store_identifier.py

"""Map product URLs and search source ids to store labels."""

from price_watch.config.settings import Settings


def identify_store(url: str) -> str | None:
    """Return the store label for *url*, or ``None`` when unknown.

    Matching is a case-insensitive substring test against
    ``Settings.STORE_REGISTRY``; the first registered fragment found
    in the URL wins.
    """
    lowered = url.lower()
    for fragment, label in Settings.STORE_REGISTRY:
        if fragment in lowered:
            return label
    return None


def find_search_source(store_id: str) -> dict[str, str] | None:
    """Return the search source config registered under *store_id*."""
    for source in Settings.SEARCH_SOURCES:
        if source["id"] == store_id:
            return source
    return None
