# price_watch/filters/price_parser.py

"""Brazilian-locale price text normalisation."""

import logging
import re

logger = logging.getLogger("price_watch.filters")

_NON_PRICE_CHARS_RE = re.compile(r"[^\d.,]")

# Every dot that has another dot after it
_LEADING_DOTS_RE = re.compile(r"\.(?=.*\.)")


def parse_price(text: str | None) -> float | None:
    """Parse a price such as ``'R$ 1.234,56'`` into ``1234.56``.

    Brazilian conventions apply: ``.`` groups thousands and ``,``
    marks decimals.  A comma that precedes the final dot is read as
    a US-style thousands separator instead (``'1,234.56'``).

    Without a comma, dots are decimal points except for one case: a
    lone dot followed by exactly three digits is read as a thousands
    separator, so ``'1.299'`` is 1299 and ``'12.500'`` is 12500 rather
    than 1.299 and 12.5.  Store pages print whole reais that way;
    prices with a three-digit fraction do not occur.

    Values below 1 with no dot in the cleaned text are taken to be
    cents read as an integer and scaled by 100 (``'0,50'`` is 50.0).

    Returns ``None`` when the text holds no parseable number.
    """
    if text is None:
        return None
    cleaned = _NON_PRICE_CHARS_RE.sub("", str(text))
    if not any(ch.isdigit() for ch in cleaned):
        return None

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")

    if last_comma > last_dot:
        integer_part = (
            cleaned[:last_comma].replace(".", "").replace(",", "")
        )
        normalised = f"{integer_part}.{cleaned[last_comma + 1:]}"
    else:
        normalised = _LEADING_DOTS_RE.sub(
            "", cleaned.replace(",", "")
        )
        head, sep, tail = normalised.rpartition(".")
        if sep and last_comma == -1 and len(tail) == 3:
            normalised = head + tail

    try:
        value = float(normalised)
    except ValueError:
        logger.debug("Unparseable price text: %r", text)
        return None

    if 0 < value < 1 and "." not in cleaned:
        value = round(value * 100, 2)
    return value
