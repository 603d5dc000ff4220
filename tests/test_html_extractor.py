# tests/test_html_extractor.py

"""Tests for HtmlProductExtractor against fixture pages."""

import unittest
from pathlib import Path

from price_watch.config.settings import Settings
from price_watch.scrapers.html_extractor import HtmlProductExtractor

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ML_SELECTORS = {
    "name": "h1.ui-pdp-title",
    "price_fraction": ".andes-money-amount__fraction",
    "price_cents": ".andes-money-amount__cents",
    "image": "img.ui-pdp-image",
}

GENERIC_SELECTORS = {
    "name": "h1",
    "price": "[itemprop=price]",
    "image": "img[class*=product-image], img[id*=product-image]",
}


def _fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class TestStoreMarkup(unittest.TestCase):
    """Fraction/cents markup and struck list prices."""

    def setUp(self) -> None:
        self.result = HtmlProductExtractor(ML_SELECTORS).extract(
            _fixture("mercado_livre_product.html"),
            "https://produto.mercadolivre.com.br/MLB-1-iphone-13",
            "Mercado Livre",
        )

    def test_name_from_title_without_site_suffix(self) -> None:
        self.assertEqual(
            self.result.name, "Apple iPhone 13 (128 GB) - Meia-noite"
        )

    def test_current_price_joins_fraction_and_cents(self) -> None:
        self.assertEqual(self.result.current_price, 1299.90)

    def test_previous_price_from_struck_markup(self) -> None:
        self.assertEqual(self.result.previous_price, 1599.0)
        self.assertFalse(self.result.previous_price_estimated)

    def test_zoom_image_preferred(self) -> None:
        self.assertEqual(
            self.result.image_url,
            "https://http2.mlstatic.com/D_NQ_NP_2X_iphone13-F.webp",
        )

    def test_store_and_url_carried(self) -> None:
        self.assertEqual(self.result.store, "Mercado Livre")
        self.assertTrue(self.result.url.startswith("https://produto."))
        self.assertFalse(self.result.was_estimated)


class TestJsonLd(unittest.TestCase):
    """Pages without a title fall back to JSON-LD product data."""

    def setUp(self) -> None:
        self.result = HtmlProductExtractor(GENERIC_SELECTORS).extract(
            _fixture("generic_product.html"),
            "https://www.lojaexemplo.com.br/cafeteira-oster",
        )

    def test_name_from_metadata(self) -> None:
        self.assertEqual(self.result.name, "Cafeteira Expresso Oster")

    def test_price_from_offers(self) -> None:
        self.assertEqual(self.result.current_price, 549.90)

    def test_previous_price_from_de_por_text(self) -> None:
        self.assertEqual(self.result.previous_price, 699.90)

    def test_first_image_from_list(self) -> None:
        self.assertEqual(
            self.result.image_url,
            "https://cdn.lojaexemplo.com.br/img/cafeteira-oster-1.jpg",
        )

    def test_graph_wrapped_product(self) -> None:
        html = (
            '<html><head><script type="application/ld+json">'
            '{"@graph": [{"@type": "WebPage"}, {"@type": ["Product"], '
            '"name": "Air Fryer", "offers": [{"price": 399}]}]}'
            "</script></head><body></body></html>"
        )
        result = HtmlProductExtractor().extract(
            html, "https://loja.com/air-fryer"
        )
        self.assertEqual(result.name, "Air Fryer")
        self.assertEqual(result.current_price, 399.0)

    def test_broken_json_ld_is_skipped(self) -> None:
        html = (
            '<html><head><script type="application/ld+json">{oops'
            "</script></head><body><span>R$ 10,00</span></body></html>"
        )
        result = HtmlProductExtractor().extract(
            html, "https://loja.com/caneca-azul"
        )
        self.assertEqual(result.name, "Caneca Azul")
        self.assertEqual(result.current_price, 10.0)


class TestRawPatterns(unittest.TestCase):
    """Regex fallbacks over the raw HTML."""

    def test_currency_pattern_and_url_name(self) -> None:
        result = HtmlProductExtractor(GENERIC_SELECTORS).extract(
            _fixture("bare_product.html"),
            "https://loja.com/mouse-gamer-rgb",
        )
        self.assertEqual(result.name, "Mouse Gamer Rgb")
        self.assertEqual(result.current_price, 89.90)
        self.assertIsNone(result.previous_price)
        self.assertEqual(
            result.image_url, Settings.PLACEHOLDER_IMAGE_URL
        )

    def test_de_por_text_takes_sale_price(self) -> None:
        result = HtmlProductExtractor().extract(
            "<title>Fone X - Loja</title>"
            "<p>de R$ 699,90 por R$ 549,90</p>",
            "https://loja.com/fone-x",
        )
        self.assertEqual(result.name, "Fone X")
        self.assertEqual(result.current_price, 549.90)
        self.assertEqual(result.previous_price, 699.90)

    def test_de_amount_in_markup_is_skipped(self) -> None:
        result = HtmlProductExtractor().extract(
            "<p>De: <span>R$ 699,90</span></p>"
            "<p><strong>R$ 549,90</strong> à vista</p>",
            "https://loja.com/fone-x",
        )
        self.assertEqual(result.current_price, 549.90)

    def test_instalment_is_not_a_list_price(self) -> None:
        result = HtmlProductExtractor().extract(
            "<p>R$ 549,90 ou 12x de R$ 45,82</p>",
            "https://loja.com/fone-x",
        )
        self.assertEqual(result.current_price, 549.90)
        self.assertIsNone(result.previous_price)

    def test_data_price_attribute(self) -> None:
        html = '<div data-price="1.499,00"></div>'
        result = HtmlProductExtractor().extract(
            html, "https://loja.com/monitor"
        )
        self.assertEqual(result.current_price, 1499.0)

    def test_no_price_found(self) -> None:
        result = HtmlProductExtractor().extract(
            "<html><body><p>Esgotado</p></body></html>",
            "https://loja.com/monitor",
        )
        self.assertEqual(result.current_price, 0.0)
        self.assertFalse(result.is_valid)


class TestPreviousPriceSynthesis(unittest.TestCase):
    """A markup-derived list price is display-only and flagged."""

    def test_disabled_by_default(self) -> None:
        result = HtmlProductExtractor(GENERIC_SELECTORS).extract(
            _fixture("bare_product.html"), "https://loja.com/mouse"
        )
        self.assertIsNone(result.previous_price)

    def test_enabled(self) -> None:
        result = HtmlProductExtractor(
            GENERIC_SELECTORS, synthesize_previous=True
        ).extract(_fixture("bare_product.html"), "https://loja.com/mouse")
        self.assertEqual(result.previous_price, round(89.90 * 1.2, 2))
        self.assertTrue(result.previous_price_estimated)


class TestStripSiteSuffix(unittest.TestCase):

    def test_cuts_at_last_separator(self) -> None:
        self.assertEqual(
            HtmlProductExtractor._strip_site_suffix(
                "Smart TV 50 - 4K | Loja Exemplo"
            ),
            "Smart TV 50 - 4K",
        )

    def test_leaves_plain_title(self) -> None:
        self.assertEqual(
            HtmlProductExtractor._strip_site_suffix("  Smart   TV  "),
            "Smart TV",
        )
