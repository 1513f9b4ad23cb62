"""DexScreener client for token identity and market data."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from solana_buy_tracker.enrich.http import SourceError, create_http_client, get_json
from solana_buy_tracker.enrich.models import MarketSnapshot, TokenIdentity

logger = logging.getLogger(__name__)

DEXSCREENER_API = "https://api.dexscreener.com/latest/dex"


class DexScreenerClient:
    """Client for the public DexScreener API.

    Pairs are ordered by USD liquidity, so the deepest pool wins when a
    token trades in several.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = DEXSCREENER_API,
        chain_id: str = "solana",
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or create_http_client()
        self._base_url = base_url.rstrip("/")
        self._chain_id = chain_id

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_pairs(self, address: str) -> list[dict[str, Any]]:
        """Return the pairs that trade a token on this chain.

        Raises:
            SourceError: If the request fails or the body is malformed.
        """
        data = await get_json(self._client, f"{self._base_url}/tokens/{address}")
        if not isinstance(data, dict):
            raise SourceError("DexScreener returned an unexpected payload")

        raw_pairs = data.get("pairs")
        if not isinstance(raw_pairs, list):
            return []

        pairs = [
            pair
            for pair in raw_pairs
            if isinstance(pair, dict) and pair.get("chainId", self._chain_id) == self._chain_id
        ]
        pairs.sort(key=_liquidity_usd, reverse=True)
        return pairs

    async def get_identity(self, address: str) -> TokenIdentity | None:
        """Look up a token's name and symbol by its address.

        Raises:
            SourceError: If the request fails or the body is malformed.
        """
        for pair in await self.get_pairs(address):
            for side in ("baseToken", "quoteToken"):
                token = pair.get(side)
                if isinstance(token, dict) and token.get("address") == address:
                    return TokenIdentity(
                        name=str(token.get("name") or ""),
                        symbol=str(token.get("symbol") or ""),
                    )
        return None

    async def get_market_snapshot(self, address: str) -> MarketSnapshot:
        """Return market cap and liquidity of the deepest pair.

        Never raises; an empty snapshot is returned when data is missing.
        """
        try:
            pairs = await self.get_pairs(address)
        except SourceError as e:
            logger.warning("DexScreener market lookup failed for %s: %s", address, e)
            return MarketSnapshot()

        if not pairs:
            return MarketSnapshot()

        pair = pairs[0]
        return MarketSnapshot(
            market_cap=_decimal(pair.get("marketCap") or pair.get("fdv")),
            liquidity_usd=_liquidity_usd(pair) or None,
        )


def _decimal(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    return value if value.is_finite() and value > 0 else None


def _liquidity_usd(pair: dict[str, Any]) -> Decimal:
    liquidity = pair.get("liquidity")
    if not isinstance(liquidity, dict):
        return Decimal(0)
    return _decimal(liquidity.get("usd")) or Decimal(0)
