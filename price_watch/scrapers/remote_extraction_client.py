# price_watch/scrapers/remote_extraction_client.py

"""Client for the third-party product extraction API."""

import json
import logging
from typing import Any, cast

from curl_cffi import requests as curl_requests

from price_watch.config.settings import Settings
from price_watch.errors import MalformedResponseError, TransientFetchError
from price_watch.filters.price_parser import parse_price
from price_watch.filters.store_identifier import identify_store
from price_watch.models.scrape_result import ScrapeResult


class RemoteExtractionClient:
    """Extraction via a hosted scraping API.

    The service takes ``{"url": ...}`` and answers
    ``{"success": bool, "data": {"title", "price": {"current",
    "previous"}, "images": [...], "seller"}}``.  Its price formatting
    is inconsistent (locale strings, numbers, occasional cent-scaled
    values), so every price is normalised here.  Each call is a
    single POST; fallback on failure is the caller's decision.
    """

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
    ) -> None:
        self.logger = logging.getLogger("price_watch.remote")
        self.settings = Settings()
        self.api_key = (
            self.settings.EXTRACTION_API_KEY
            if api_key is None
            else api_key
        )
        self.endpoint = endpoint or self.settings.EXTRACTION_API_URL
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def _post(
        self, payload: dict[str, str],
    ) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON body."""
        url = payload["url"]
        if not self.api_key:
            raise TransientFetchError(
                "Extraction API key is not configured",
                url=url,
                stage="remote",
            )
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            resp = self.session.post(
                self.endpoint,
                headers=headers,
                json=payload,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            raise TransientFetchError(
                f"Extraction API request failed: {exc}",
                url=url,
                stage="remote",
            ) from exc

        self.logger.debug(
            "[remote] HTTP %d for %s", resp.status_code, url
        )
        if not 200 <= resp.status_code < 300:
            raise TransientFetchError(
                f"Extraction API HTTP {resp.status_code}: "
                f"{str(resp.text)[:200]}",
                url=url,
                stage="remote",
            )

        content_type = str(resp.headers.get("content-type") or "")
        if "application/json" not in content_type.lower():
            raise MalformedResponseError(
                f"Extraction API returned {content_type or 'no'} "
                "content type",
                url=url,
                stage="remote",
            )
        try:
            body: Any = json.loads(resp.text)
        except (json.JSONDecodeError, TypeError) as exc:
            raise MalformedResponseError(
                f"Extraction API returned invalid JSON: {exc}",
                url=url,
                stage="remote",
            ) from exc
        if not isinstance(body, dict):
            raise MalformedResponseError(
                "Extraction API body is not an object",
                url=url,
                stage="remote",
            )
        data = cast(dict[str, Any], body)
        if not data.get("success") or not isinstance(
            data.get("data"), dict
        ):
            raise MalformedResponseError(
                "Extraction API reported failure: "
                f"{data.get('error') or 'no data'}",
                url=url,
                stage="remote",
            )
        return cast(dict[str, Any], data["data"])

    @staticmethod
    def _coerce_price(raw: Any) -> float | None:
        """Normalise a price the service sent as a number or string."""
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, (int, float)):
            return float(raw)
        return parse_price(str(raw))

    def _to_result(
        self,
        data: dict[str, Any],
        url: str,
        store: str | None,
    ) -> ScrapeResult:
        """Map the service's ``data`` object onto a ScrapeResult."""
        price_block: Any = data.get("price")
        prices = (
            cast(dict[str, Any], price_block)
            if isinstance(price_block, dict)
            else {}
        )
        current = self._coerce_price(prices.get("current")) or 0.0
        previous = self._coerce_price(prices.get("previous"))

        # The service sometimes returns cent-scaled values
        if 0 < current < 1:
            current *= 100
        if previous is not None and previous < 1 and current > 10:
            previous *= 100

        images: Any = data.get("images")
        image_url = ""
        if isinstance(images, list) and images:
            image_url = str(cast(list[Any], images)[0])

        return ScrapeResult(
            name=str(data.get("title") or "").strip(),
            current_price=round(current, 2),
            previous_price=(
                round(previous, 2) if previous else None
            ),
            image_url=image_url or self.settings.PLACEHOLDER_IMAGE_URL,
            store=(
                store
                or str(data.get("seller") or "")
                or identify_store(url)
                or self.settings.UNKNOWN_STORE
            ),
            url=url,
        )

    def extract(
        self,
        url: str,
        store: str | None = None,
        query: str | None = None,
    ) -> ScrapeResult:
        """Extract product data for *url* through the remote service.

        Raises:
            TransientFetchError: transport error, timeout or non-2xx.
            MalformedResponseError: non-JSON or ``success: false``.
        """
        payload = {"url": url}
        if query:
            payload["query"] = query
        data = self._post(payload)
        result = self._to_result(data, url, store)
        self.logger.info(
            "[remote] Extracted '%s' at %.2f from %s",
            result.name,
            result.current_price,
            url,
        )
        return result
