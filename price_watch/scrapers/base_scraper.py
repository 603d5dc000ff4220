# price_watch/scrapers/base_scraper.py

"""Abstract base class for page-fetching extraction strategies."""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from price_watch.config.settings import Settings
from price_watch.errors import MalformedResponseError, TransientFetchError
from price_watch.models.scrape_result import ScrapeResult

# Markers of a Cloudflare interstitial instead of the requested page
_CHALLENGE_MARKERS: tuple[str, ...] = (
    "challenges.cloudflare.com",
    "cdn-cgi/challenge-platform",
    "just a moment",
    "cf-turnstile",
    "cf_chl_opt",
)

# Real product pages are long and may mention "captcha" in scripts
_CAPTCHA_SCAN_MAX_CHARS = 5000


class BaseScraper(ABC):
    """Shared fetching for strategies that hit store sites directly.

    The fetch helpers either return a body or raise
    :class:`~price_watch.errors.TransientFetchError` tagged with the
    URL and this strategy's *stage* name, so every fallback step ends
    in a typed outcome the orchestrator can log.
    """

    def __init__(self, source_name: str, stage: str) -> None:
        self.source_name = source_name
        self.stage = stage
        self.logger = logging.getLogger(
            f"price_watch.{source_name}"
        )
        self.settings = Settings()
        self.selectors: dict[str, str] = self._load_selectors()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY

    def _load_selectors(self) -> dict[str, str]:
        """Load CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, str] = all_selectors.get(
            self.source_name, {}
        )
        return result

    def _fetch_error(
        self, message: str, url: str, stage: str | None = None,
    ) -> TransientFetchError:
        return TransientFetchError(
            message, url=url, stage=stage or self.stage,
        )

    def _blocked_reason(self, text: str) -> str | None:
        """Name the anti-bot page *text* turned out to be, if any."""
        lower = text.lower()
        for marker in _CHALLENGE_MARKERS:
            if marker in lower:
                return f"Cloudflare challenge ({marker})"
        if len(text) <= _CAPTCHA_SCAN_MAX_CHARS:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    return f"CAPTCHA page ({keyword})"
        return None

    def _back_off(self) -> None:
        """Double the delay, capped, and wait it out."""
        self._current_delay = min(
            self._current_delay * 2,
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER,
        )
        self.logger.debug(
            "[%s] Delay escalated to %.1fs",
            self.source_name,
            self._current_delay,
        )
        time.sleep(self._current_delay)

    def _fetch(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        stage: str | None = None,
        page: bool = True,
    ) -> str:
        """GET *url* through the impersonating session; return the body.

        Timeouts, 5xx, 403/429 and (for HTML *page* fetches)
        anti-bot interstitials are retried up to ``MAX_RETRIES``
        times.  Any other 4xx fails at once.

        Raises:
            TransientFetchError: no usable response was obtained.
        """
        reason = "no attempt made"
        for attempt in range(1, self.settings.MAX_RETRIES + 1):
            try:
                resp = self.session.get(
                    url,
                    headers=headers or self.settings.DEFAULT_HEADERS,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
            except Exception as exc:
                reason = f"request error: {exc}"
                self.logger.warning(
                    "[%s] %s (attempt %d) for %s",
                    self.source_name,
                    reason,
                    attempt,
                    url,
                )
                time.sleep(self._current_delay * attempt)
                continue

            status = resp.status_code
            if 200 <= status < 300:
                text = str(resp.text)
                blocked = self._blocked_reason(text) if page else None
                if blocked is None:
                    return text
                reason = blocked
                self.logger.warning(
                    "[%s] %s (attempt %d) for %s",
                    self.source_name,
                    reason,
                    attempt,
                    url,
                )
                self._back_off()
                continue

            reason = f"HTTP {status}"
            self.logger.warning(
                "[%s] %s (attempt %d) for %s",
                self.source_name,
                reason,
                attempt,
                url,
            )
            if status in (403, 429):
                self._back_off()
            elif status < 500:
                break

        raise self._fetch_error(reason, url, stage)

    def _fetch_json(self, url: str, stage: str | None = None) -> Any:
        """GET a JSON endpoint and decode it.

        Raises:
            TransientFetchError: the endpoint could not be reached.
            MalformedResponseError: the body is not JSON.
        """
        body = self._fetch(
            url,
            {**self.settings.DEFAULT_HEADERS, "Accept": "application/json"},
            stage=stage,
            page=False,
        )
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(
                f"Non-JSON body: {exc}",
                url=url,
                stage=stage or self.stage,
            ) from exc

    def _get_html(self, url: str) -> str:
        """Fetch page HTML via curl_cffi, then cloudscraper.

        Raises:
            TransientFetchError: both fetchers failed; the message
                carries both reasons.
        """
        time.sleep(self._current_delay)
        try:
            return self._fetch(url)
        except TransientFetchError as primary:
            self.logger.info(
                "[%s] curl_cffi gave up on %s (%s), trying cloudscraper",
                self.source_name,
                url,
                primary,
            )
            failure = primary

        try:
            scraper: Any = cloudscraper.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            raise self._fetch_error(
                f"{failure}; cloudscraper error: {exc}", url
            ) from exc
        if not 200 <= resp.status_code < 300:
            raise self._fetch_error(
                f"{failure}; cloudscraper HTTP {resp.status_code}", url
            ) from failure
        return str(resp.text)

    @abstractmethod
    def extract(
        self, url: str, store: str | None = None,
    ) -> ScrapeResult:
        """Scrape *url* into a ScrapeResult.

        Raises:
            ScrapeError: this strategy could not produce a result.
        """
        ...
