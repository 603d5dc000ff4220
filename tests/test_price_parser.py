# tests/test_price_parser.py

"""Tests for Brazilian-locale price text parsing."""

import unittest

from price_watch.filters.price_parser import parse_price


class TestParsePrice(unittest.TestCase):
    """parse_price handles locale separators and noise."""

    def test_brazilian_format(self) -> None:
        """Dot thousands and comma decimals."""
        self.assertEqual(parse_price("R$ 1.234,56"), 1234.56)

    def test_multiple_thousands_groups(self) -> None:
        self.assertEqual(parse_price("R$ 1.234.567,89"), 1234567.89)

    def test_us_format(self) -> None:
        """A comma before the final dot is a thousands separator."""
        self.assertEqual(parse_price("$1,234.56"), 1234.56)

    def test_plain_decimal_dot(self) -> None:
        self.assertEqual(parse_price("549.90"), 549.90)

    def test_comma_decimal_without_thousands(self) -> None:
        self.assertEqual(parse_price("89,90"), 89.90)

    def test_lone_dot_with_three_digits_is_thousands(self) -> None:
        """Mercado Livre fractions like '1.299' mean 1299."""
        self.assertEqual(parse_price("1.299"), 1299.0)
        self.assertEqual(parse_price("12.500"), 12500.0)
        self.assertEqual(parse_price("12.50"), 12.5)

    def test_integer(self) -> None:
        self.assertEqual(parse_price("R$ 100"), 100.0)

    def test_currency_and_whitespace_noise(self) -> None:
        """Symbols, nbsp and words are ignored."""
        self.assertEqual(
            parse_price("por\xa0R$\xa0 2.499,00 à vista"), 2499.0
        )

    def test_cents_heuristic(self) -> None:
        """'0,50' is cents read as an integer, scaled to 50."""
        self.assertEqual(parse_price("0,50"), 50.0)

    def test_dotted_fraction_below_one_is_kept(self) -> None:
        """The cents heuristic only applies without a dot."""
        self.assertEqual(parse_price("0.50"), 0.5)

    def test_no_digits_returns_none(self) -> None:
        for text in ("", "R$", "indisponível", None):
            with self.subTest(text=text):
                self.assertIsNone(parse_price(text))

    def test_separators_only_returns_none(self) -> None:
        self.assertIsNone(parse_price(".,"))

    def test_formatted_value_round_trips(self) -> None:
        """Formatting a value the Brazilian way parses back to it."""
        for value in (1.0, 99.0, 12.3, 999.99, 1234.5, 98765.43):
            text = (
                f"R$ {value:,.2f}"
                .replace(",", "X")
                .replace(".", ",")
                .replace("X", ".")
            )
            with self.subTest(text=text):
                self.assertAlmostEqual(parse_price(text) or 0, value)
