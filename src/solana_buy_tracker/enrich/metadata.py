"""Token identity resolution through an ordered chain of sources.

Sources are tried in order and the first candidate that passes
validation wins:

1. DexScreener token lookup
2. Community token list (exact address match)
3. On-chain token-metadata account
4. Third-party token-info API

Each candidate is validated before acceptance. A name or symbol shaped
like an address is replaced with a neutral placeholder, since such values
are a common spoofing trick. Empty, non-ASCII or over-long values reject
the whole candidate. When every source fails, the resolver returns
``Unverified`` and the first four characters of the address.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from solders.pubkey import Pubkey

from solana_buy_tracker.enrich.http import SourceError, create_http_client, get_json
from solana_buy_tracker.enrich.models import TokenIdentity
from solana_buy_tracker.enrich.validation import is_gibberish, looks_like_address, short_symbol

if TYPE_CHECKING:
    from solana_buy_tracker.enrich.dexscreener import DexScreenerClient

logger = logging.getLogger(__name__)

METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
TOKEN_LIST_URL = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/"
    "src/tokens/solana.tokenlist.json"
)
TOKEN_INFO_URL = "https://tokens.jup.ag/token/{address}"
DEFAULT_TOKEN_LIST_TTL_SECONDS = 3600.0

UNVERIFIED_NAME = "Unverified"

# Fixed layout of the metadata account: name in bytes 1-32, symbol in 33-42
NAME_OFFSET = 1
NAME_LENGTH = 32
SYMBOL_OFFSET = NAME_OFFSET + NAME_LENGTH
SYMBOL_LENGTH = 10

IdentitySource = Callable[[str], Awaitable[TokenIdentity | None]]


class AccountDataSource(Protocol):
    """Ledger capability needed to read raw account bytes."""

    async def get_account_data(self, address: str) -> bytes | None: ...


def derive_metadata_address(mint: str) -> str:
    """Derive the metadata account address for a mint.

    Raises:
        ValueError: If ``mint`` is not a valid public key.
    """
    program = Pubkey.from_string(METADATA_PROGRAM_ID)
    pda, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(program), bytes(Pubkey.from_string(mint))],
        program,
    )
    return str(pda)


def _decode_padded(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("latin-1").strip()


def decode_metadata_account(data: bytes) -> TokenIdentity:
    """Decode the name and symbol fields of a metadata account.

    Raises:
        ValueError: If the account is too short to hold both fields.
    """
    end = SYMBOL_OFFSET + SYMBOL_LENGTH
    if len(data) < end:
        raise ValueError(f"Metadata account too short: {len(data)} < {end} bytes")

    return TokenIdentity(
        name=_decode_padded(data[NAME_OFFSET:SYMBOL_OFFSET]),
        symbol=_decode_padded(data[SYMBOL_OFFSET:end]),
    )


def sanitize_identity(candidate: TokenIdentity, address: str) -> TokenIdentity | None:
    """Validate a candidate identity.

    Returns:
        The cleaned identity, or None if it must be rejected.
    """
    name = candidate.name.strip()
    symbol = candidate.symbol.strip()

    if looks_like_address(name):
        name = UNVERIFIED_NAME
    if looks_like_address(symbol):
        symbol = short_symbol(address)

    if is_gibberish(name) or is_gibberish(symbol):
        return None
    return TokenIdentity(name=name, symbol=symbol)


def fallback_identity(address: str) -> TokenIdentity:
    """Identity used when no source yields a usable candidate."""
    return TokenIdentity(name=UNVERIFIED_NAME, symbol=short_symbol(address))


class DexScreenerSource:
    """Identity from the DexScreener token endpoint."""

    name = "dexscreener"

    def __init__(self, client: DexScreenerClient) -> None:
        self._client = client

    async def __call__(self, address: str) -> TokenIdentity | None:
        return await self._client.get_identity(address)


class TokenListSource:
    """Identity from a static community token list."""

    name = "token-list"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        url: str = TOKEN_LIST_URL,
        ttl_seconds: float = DEFAULT_TOKEN_LIST_TTL_SECONDS,
    ) -> None:
        self._client = http_client
        self._url = url
        self._ttl = ttl_seconds
        self._entries: dict[str, dict[str, Any]] | None = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()

    async def _load(self) -> dict[str, dict[str, Any]]:
        async with self._lock:
            fresh = time.monotonic() - self._fetched_at < self._ttl
            if self._entries is not None and fresh:
                return self._entries

            data = await get_json(self._client, self._url)
            tokens = data.get("tokens") if isinstance(data, dict) else data
            if not isinstance(tokens, list):
                raise SourceError("Token list has no token array")

            self._entries = {
                str(entry["address"]): entry
                for entry in tokens
                if isinstance(entry, dict) and entry.get("address")
            }
            self._fetched_at = time.monotonic()
            logger.debug("Loaded %d token-list entries", len(self._entries))
            return self._entries

    async def __call__(self, address: str) -> TokenIdentity | None:
        entry = (await self._load()).get(address)
        if entry is None:
            return None
        return TokenIdentity(
            name=str(entry.get("name") or ""),
            symbol=str(entry.get("symbol") or ""),
        )


class OnChainMetadataSource:
    """Identity decoded from the on-chain metadata account."""

    name = "on-chain"

    def __init__(self, ledger: AccountDataSource) -> None:
        self._ledger = ledger

    async def __call__(self, address: str) -> TokenIdentity | None:
        data = await self._ledger.get_account_data(derive_metadata_address(address))
        if data is None:
            return None
        return decode_metadata_account(data)


class TokenInfoApiSource:
    """Identity from a third-party token-info API."""

    name = "token-info-api"

    def __init__(self, http_client: httpx.AsyncClient, *, url: str = TOKEN_INFO_URL) -> None:
        self._client = http_client
        self._url = url

    async def __call__(self, address: str) -> TokenIdentity | None:
        data = await get_json(self._client, self._url.format(address=address))
        if not isinstance(data, dict) or not (data.get("name") or data.get("symbol")):
            return None
        return TokenIdentity(
            name=str(data.get("name") or ""),
            symbol=str(data.get("symbol") or ""),
        )


class MetadataResolver:
    """Resolves a token address to a display name and symbol.

    ``resolve()`` never raises and results are not cached, so every call
    queries the sources again.

    Example:
        ```python
        resolver = MetadataResolver.default(http_client, rpc_client, dexscreener)
        identity = await resolver.resolve(mint)
        print(identity.name, identity.symbol)
        ```
    """

    def __init__(self, sources: Sequence[IdentitySource]) -> None:
        self._sources = list(sources)

    @classmethod
    def default(
        cls,
        http_client: httpx.AsyncClient | None,
        ledger: AccountDataSource,
        dexscreener: DexScreenerClient,
        *,
        token_list_url: str = TOKEN_LIST_URL,
        token_info_url: str = TOKEN_INFO_URL,
    ) -> MetadataResolver:
        """Build the resolver with the standard source order."""
        client = http_client or create_http_client()
        return cls(
            [
                DexScreenerSource(dexscreener),
                TokenListSource(client, url=token_list_url),
                OnChainMetadataSource(ledger),
                TokenInfoApiSource(client, url=token_info_url),
            ]
        )

    async def resolve(self, address: str) -> TokenIdentity:
        """Resolve a token's identity, falling back to a placeholder."""
        for source in self._sources:
            source_name = getattr(source, "name", None) or getattr(
                source, "__name__", type(source).__name__
            )
            try:
                candidate = await source(address)
            except Exception as e:
                logger.warning("Identity source %s failed for %s: %s", source_name, address, e)
                continue

            if candidate is None:
                continue

            identity = sanitize_identity(candidate, address)
            if identity is None:
                logger.info(
                    "Rejected identity from %s for %s: %r", source_name, address, candidate
                )
                continue

            logger.debug("Resolved %s via %s: %s", address, source_name, identity)
            return identity

        return fallback_identity(address)
