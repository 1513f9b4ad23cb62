"""Enrichment layer - token identity, market data and SOL price."""

from solana_buy_tracker.enrich.dexscreener import DexScreenerClient
from solana_buy_tracker.enrich.http import SourceError, create_http_client
from solana_buy_tracker.enrich.metadata import (
    MetadataResolver,
    decode_metadata_account,
    derive_metadata_address,
    fallback_identity,
    sanitize_identity,
)
from solana_buy_tracker.enrich.models import MarketSnapshot, TokenIdentity
from solana_buy_tracker.enrich.price import PriceOracle
from solana_buy_tracker.enrich.validation import (
    is_gibberish,
    is_printable_ascii,
    is_valid_mint_address,
    looks_like_address,
)

__all__ = [
    "DexScreenerClient",
    "MarketSnapshot",
    "MetadataResolver",
    "PriceOracle",
    "SourceError",
    "TokenIdentity",
    "create_http_client",
    "decode_metadata_account",
    "derive_metadata_address",
    "fallback_identity",
    "is_gibberish",
    "is_printable_ascii",
    "is_valid_mint_address",
    "looks_like_address",
    "sanitize_identity",
]
