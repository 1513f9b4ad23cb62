"""SOL/USD price oracle with a single fallback source."""

from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation

import httpx

from solana_buy_tracker.enrich.http import SourceError, create_http_client, get_json

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"
JUPITER_PRICE_URL = "https://lite-api.jup.ag/price/v2"
COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
DEFAULT_CACHE_TTL_SECONDS = 30.0

UNKNOWN_PRICE = Decimal(0)


class PriceOracle:
    """Resolves the current SOL price in USD.

    The aggregator quote endpoint is tried first, then a public
    market-data API once. ``get_quote_price()`` never raises; it returns
    ``0`` when both sources fail, which callers must read as "unknown".

    Example:
        ```python
        oracle = PriceOracle()
        price = await oracle.get_quote_price()
        if price > 0:
            print(f"SOL = ${price:.2f}")
        ```
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        primary_url: str = JUPITER_PRICE_URL,
        fallback_url: str = COINGECKO_PRICE_URL,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        """Initialize the oracle.

        Args:
            http_client: Shared httpx client. Created if omitted.
            primary_url: Aggregator price endpoint.
            fallback_url: Market-data price endpoint.
            cache_ttl_seconds: How long a good price is reused; 0 disables.
        """
        self._owns_client = http_client is None
        self._client = http_client or create_http_client()
        self._primary_url = primary_url
        self._fallback_url = fallback_url
        self._cache_ttl = cache_ttl_seconds
        self._cached: tuple[Decimal, float] | None = None

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_quote_price(self) -> Decimal:
        """Return the SOL price in USD, or 0 if unknown."""
        if self._cached and self._cache_ttl > 0:
            price, fetched_at = self._cached
            if time.monotonic() - fetched_at < self._cache_ttl:
                return price

        price = await self._fetch_primary()
        if price is None:
            price = await self._fetch_fallback()
        if price is None:
            logger.warning("All price sources failed; SOL price unknown")
            return UNKNOWN_PRICE

        self._cached = (price, time.monotonic())
        return price

    async def _fetch_primary(self) -> Decimal | None:
        try:
            data = await get_json(self._client, self._primary_url, params={"ids": SOL_MINT})
            return _positive(data["data"][SOL_MINT]["price"])
        except (SourceError, KeyError, TypeError) as e:
            logger.warning("Primary price source failed: %s", e)
            return None

    async def _fetch_fallback(self) -> Decimal | None:
        try:
            data = await get_json(
                self._client,
                self._fallback_url,
                params={"ids": "solana", "vs_currencies": "usd"},
            )
            return _positive(data["solana"]["usd"])
        except (SourceError, KeyError, TypeError) as e:
            logger.warning("Fallback price source failed: %s", e)
            return None


def _positive(raw: object) -> Decimal | None:
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    return value if value.is_finite() and value > 0 else None
