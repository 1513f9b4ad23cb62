"""Data models for the enrichment module."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TokenIdentity:
    """Display name and ticker of a token."""

    name: str
    symbol: str


@dataclass(frozen=True)
class MarketSnapshot:
    """Market figures for a token, each None when the source lacks it."""

    market_cap: Decimal | None = None
    liquidity_usd: Decimal | None = None
