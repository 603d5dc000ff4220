# tests/test_name_deriver.py

"""Tests for URL-derived product names."""

import unittest

from price_watch.filters.name_deriver import derive_name_from_url


class TestDeriveNameFromUrl(unittest.TestCase):
    """derive_name_from_url never returns an empty name."""

    def test_slug_with_extension(self) -> None:
        """Separators become spaces, digits and extension are dropped."""
        self.assertEqual(
            derive_name_from_url(
                "https://loja.com/cafeteira-expresso-oster-220v.html"
            ),
            "Cafeteira Expresso Oster V",
        )

    def test_underscores_and_query(self) -> None:
        self.assertEqual(
            derive_name_from_url(
                "https://loja.com/fone_bluetooth_jbl?ref=home"
            ),
            "Fone Bluetooth Jbl",
        )

    def test_short_last_segment_uses_previous(self) -> None:
        self.assertEqual(
            derive_name_from_url("https://loja.com/cafeteira-oster/p"),
            "Cafeteira Oster",
        )

    def test_fallbacks(self) -> None:
        for url in (
            "https://loja.com/",
            "https://loja.com/12345",
            "",
            "http://[broken",
        ):
            with self.subTest(url=url):
                self.assertEqual(
                    derive_name_from_url(url), "Online Product"
                )
