"""
Transfermarkt page client with rate limiting and retry logic.

Transfermarkt does not answer a rate-limited request with 429. It answers 200
with a tiny body (~146 bytes), so payload size is the signal. A page that stays
short after the bounded retries comes back as "" and callers treat that as
"no data for this page".
"""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, Optional

import httpx
from asyncio_throttle import Throttler

from config import Config

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

PAGE_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

AJAX_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "X-Requested-With": "XMLHttpRequest",
}

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Per-direction paths of the market value movers statistics
MOVER_DIRECTIONS: Dict[str, Dict[str, str]] = {
    "losers": {"path": "marktwertverluste", "sort": "aenderung", "age_class": "alle"},
    "winners": {"path": "marktwertspruenge", "sort": "aenderung.desc", "age_class": "o23"},
}


class TransfermarktError(Exception):
    """Base exception for Transfermarkt client errors."""
    pass


class TransfermarktNonRetryableError(TransfermarktError):
    """Raised for non-retryable errors (4xx except 429)."""
    pass


class TransfermarktClient:
    """Fetches Transfermarkt pages as text."""

    def __init__(
        self,
        config: Config,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.config = config
        self._sleep = sleep
        self.base_url = config.tm_base_url.rstrip("/")
        self.max_retries = config.fetch_max_retries
        self.retry_delay = config.fetch_retry_delay
        self.min_payload_bytes = config.min_payload_bytes

        self.throttler = Throttler(
            rate_limit=config.max_requests_per_minute,
            period=60.0
        )
        self.min_interval = config.min_request_interval
        self.last_request_time = 0.0

        self.client = http_client or httpx.AsyncClient(
            timeout=config.request_timeout,
            follow_redirects=True,
            headers=PAGE_HEADERS,
        )

    async def _wait_for_rate_limit(self):
        """Wait to respect rate limiting."""
        await self.throttler.acquire()

        current_time = time.time()
        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_interval:
            wait_time = self.min_interval - time_since_last
            # Add jitter (±25%)
            jitter = wait_time * 0.25 * (random.random() * 2 - 1)
            await asyncio.sleep(wait_time + jitter)

        self.last_request_time = time.time()

    async def _get_once(self, url: str, headers: Dict[str, str]) -> str:
        """
        Single GET. Returns the body, or "" for a transient failure.

        Raises:
            TransfermarktNonRetryableError: For 4xx other than 429
        """
        await self._wait_for_rate_limit()
        try:
            response = await self.client.get(url, headers=headers)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.warning("Transient network error", extra={
                "url": url,
                "error": str(e),
                "error_type": type(e).__name__
            })
            return ""

        if response.is_success:
            return response.text

        status_code = response.status_code
        if status_code in RETRYABLE_STATUS_CODES:
            logger.warning("Retryable status from Transfermarkt", extra={
                "url": url,
                "status_code": status_code
            })
            return ""

        raise TransfermarktNonRetryableError(
            f"Non-retryable error {status_code}: {url}"
        )

    async def fetch_page(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        """
        Fetch a page, retrying short (rate-limited) bodies with linear backoff.

        Args:
            url: Absolute URL
            headers: Extra request headers merged over the defaults

        Returns:
            Page text, or "" when every attempt came back short
        """
        request_headers = dict(PAGE_HEADERS)
        if headers:
            request_headers.update(headers)

        for attempt in range(self.max_retries + 1):
            text = await self._get_once(url, request_headers)
            if len(text) >= self.min_payload_bytes:
                return text

            if attempt < self.max_retries:
                wait_time = self.retry_delay * (attempt + 1)
                logger.warning("Short response, retrying", extra={
                    "url": url,
                    "bytes": len(text),
                    "attempt": attempt + 1,
                    "wait_time": wait_time
                })
                await self._sleep(wait_time)

        logger.warning("Page unavailable after retries", extra={
            "url": url,
            "retries": self.max_retries
        })
        return ""

    def value_listing_url(self, page: int) -> str:
        """Most valuable players listing, value-ranked."""
        url = (
            f"{self.base_url}/spieler-statistik/wertvollstespieler/marktwertetop"
            "?ajax=yw1&altersklasse=alle&ausrichtung=alle&land_id=0&yt0=Show"
        )
        return url if page == 1 else f"{url}&page={page}"

    def minutes_listing_url(self, page: int) -> str:
        """Players ranked by minutes played in the current season."""
        url = (
            f"{self.base_url}/spieler-statistik/meisteeinsaetze/statistik"
            "?ajax=yw1&altersklasse=alle&ausrichtung=alle&land_id=0&yt0=Show&sort=minuten.desc"
        )
        return url if page == 1 else f"{url}&page={page}"

    def player_stats_url(self, player_id: str) -> str:
        return f"{self.base_url}/x/leistungsdaten/spieler/{player_id}"

    def period_movers_url(self, period: str, direction: str) -> str:
        cfg = MOVER_DIRECTIONS[direction]
        return (
            f"{self.base_url}/spieler-statistik/{cfg['path']}/marktwertetop/plus/ajax/yw1"
            f"/datum/{period}/ausrichtung/alle/spielerposition_id//altersklasse/{cfg['age_class']}"
            f"/land_id/0/yt0/Show/0//sort/{cfg['sort']}?ajax=yw1"
        )

    def period_movers_referer(self, period: str, direction: str) -> str:
        cfg = MOVER_DIRECTIONS[direction]
        return (
            f"{self.base_url}/spieler-statistik/{cfg['path']}/marktwertetop/plus/0/galerie/0"
            f"?datum={period}&ausrichtung=alle&spielerposition_id="
            f"&altersklasse={cfg['age_class']}&land_id=0&yt0=Show"
        )

    async def get_value_listing_page(self, page: int) -> str:
        return await self.fetch_page(self.value_listing_url(page))

    async def get_minutes_listing_page(self, page: int) -> str:
        return await self.fetch_page(self.minutes_listing_url(page))

    async def get_player_stats_page(self, player_id: str) -> str:
        return await self.fetch_page(self.player_stats_url(player_id))

    async def get_period_movers_page(self, period: str, direction: str) -> str:
        """
        Get one period of the market value movers statistic.

        Args:
            period: Valuation date, YYYY-MM-DD
            direction: "losers" or "winners"
        """
        headers = dict(AJAX_HEADERS)
        headers["Referer"] = self.period_movers_referer(period, direction)
        return await self.fetch_page(self.period_movers_url(period, direction), headers=headers)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
