# price_watch/filters/name_deriver.py

"""Derive a display name from a product URL path."""

import re
from urllib.parse import urlparse

from price_watch.config.settings import Settings

_SEPARATOR_RE = re.compile(r"[-_]+")
_DIGITS_RE = re.compile(r"\d+")

_MIN_SEGMENT_LENGTH = 3


def derive_name_from_url(url: str) -> str:
    """Build a best-effort product name from the last URL path segment.

    ``https://loja.com/cafeteira-expresso-oster-220v.html`` becomes
    ``'Cafeteira Expresso Oster V'``.  Falls back to
    ``Settings.FALLBACK_PRODUCT_NAME``, so the result is never empty.
    """
    try:
        path = urlparse(url).path
    except ValueError:
        return Settings.FALLBACK_PRODUCT_NAME

    segments = [s for s in path.split("/") if s]
    if not segments:
        return Settings.FALLBACK_PRODUCT_NAME

    segment = segments[-1]
    if len(segment) < _MIN_SEGMENT_LENGTH and len(segments) > 1:
        segment = segments[-2]

    segment = segment.split("?")[0].split(".")[0]
    words = _DIGITS_RE.sub("", _SEPARATOR_RE.sub(" ", segment)).split()
    name = " ".join(w[:1].upper() + w[1:].lower() for w in words)
    return name or Settings.FALLBACK_PRODUCT_NAME
