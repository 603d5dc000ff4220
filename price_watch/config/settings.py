# price_watch/config/settings.py

"""Central configuration for the price_watch pipeline."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the price_watch pipeline."""

    # --- Scraping ---
    REQUEST_DELAY: float = 1.0          # Seconds before each page fetch
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Retry count on transient failures

    # --- Resilience ---
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Remote extraction service ---
    EXTRACTION_API_URL: str = os.getenv(
        "EXTRACTION_API_URL",
        "https://api.firecrawl.co/product-data",
    )
    EXTRACTION_API_KEY: str = os.getenv("EXTRACTION_API_KEY", "")

    # --- Mercado Livre public search API ---
    MERCADO_LIVRE_SEARCH_API: str = (
        "https://api.mercadolibre.com/sites/MLB/search?q={query}"
    )

    # --- Placeholders ---
    UNKNOWN_STORE: str = "Unknown"
    FALLBACK_PRODUCT_NAME: str = "Online Product"
    PLACEHOLDER_IMAGE_URL: str = "https://via.placeholder.com/300"
    # Sentinel for "price unknown"; always paired with was_estimated=True
    PLACEHOLDER_PRICE: float = 0.01
    SYNTHESIZE_PREVIOUS_PRICE: bool = False
    ESTIMATED_PREVIOUS_MARKUP: float = 1.2

    # --- Refresh ---
    REFRESH_BATCH_SIZE: int = 10
    REFRESH_MAX_WORKERS: int = 4
    PRICE_EPSILON: float = 0.01

    # --- Users ---
    DEFAULT_USER_ID: str = os.getenv("PRICE_WATCH_USER", "local")

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = (
        BASE_DIR / "price_watch" / "config" / "selectors.json"
    )
    DB_PATH: Path = Path(
        os.getenv(
            "PRICE_WATCH_DB",
            str(BASE_DIR / "data" / "price_watch.db"),
        )
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Store registry (fragment -> label, first match wins) ---
    STORE_REGISTRY: list[tuple[str, str]] = [
        ("mercadolivre", "Mercado Livre"),
        ("mercadolibre", "Mercado Livre"),
        ("amazon", "Amazon"),
        ("magalu", "Magazine Luiza"),
        ("magazineluiza", "Magazine Luiza"),
        ("shopee", "Shopee"),
        ("aliexpress", "AliExpress"),
        ("ebay", "eBay"),
        ("americanas", "Americanas"),
        ("submarino", "Submarino"),
        ("casasbahia", "Casas Bahia"),
        ("pontofrio", "Pontofrio"),
        ("extra", "Extra"),
    ]

    # --- Extraction strategies (name -> class) ---
    EXTRACTION_STRATEGIES: dict[str, str] = {
        "mercado_livre": (
            "price_watch.scrapers.mercado_livre_scraper"
            ".MercadoLivreScraper"
        ),
        "remote": (
            "price_watch.scrapers.remote_extraction_client"
            ".RemoteExtractionClient"
        ),
        "direct_page": (
            "price_watch.scrapers.generic_scraper"
            ".GenericPageScraper"
        ),
    }

    # Store label -> ordered strategy names; "default" for everything else
    STRATEGY_CHAINS: dict[str, list[str]] = {
        "Mercado Livre": ["mercado_livre", "remote", "mercado_livre"],
        "default": ["remote", "direct_page"],
    }

    # --- Search sources ---
    SEARCH_SOURCES: list[dict[str, str]] = [
        {
            "id": "mercadolivre",
            "label": "Mercado Livre",
            "search_url": (
                "https://www.mercadolivre.com.br/ofertas?q={query}"
            ),
            "search_api": "mercado_livre",
        },
        {
            "id": "amazon",
            "label": "Amazon",
            "search_url": "https://www.amazon.com.br/s?k={query}",
        },
        {
            "id": "magalu",
            "label": "Magazine Luiza",
            "search_url": (
                "https://www.magazineluiza.com.br/busca/{query}"
            ),
        },
        {
            "id": "shopee",
            "label": "Shopee",
            "search_url": "https://shopee.com.br/search?keyword={query}",
        },
        {
            "id": "aliexpress",
            "label": "AliExpress",
            "search_url": (
                "https://pt.aliexpress.com/wholesale?SearchText={query}"
            ),
        },
        {
            "id": "ebay",
            "label": "eBay",
            "search_url": "https://www.ebay.com/sch/i.html?_nkw={query}",
        },
    ]
