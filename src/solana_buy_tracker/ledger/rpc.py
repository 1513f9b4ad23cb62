"""Solana JSON-RPC client with rate limiting, retries and failover.

This module provides the ledger-query capability used by the buy-event
pipeline:
- Signature listing for an address (newest-first, paginated)
- Transaction lookup by signature
- Raw account data lookup (for on-chain token metadata)

Requests go through a token-bucket rate limiter and are retried with
exponential backoff. When the primary endpoint keeps failing, calls fail
over to an optional secondary RPC URL.
"""

import asyncio
import base64
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from solana_buy_tracker.ledger.models import SignatureInfo, TransactionRecord

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_MAX_REQUESTS_PER_SECOND = 10
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 0.5
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_COMMITMENT = "confirmed"
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class LedgerError(Exception):
    """Base exception for ledger client errors."""


class RPCError(LedgerError):
    """Raised when an RPC call fails or returns an error object."""


class RateLimitError(LedgerError):
    """Raised when the RPC node rejects a request with HTTP 429."""


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> "RateLimiter":
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


class SolanaRpcClient:
    """Solana JSON-RPC client over httpx.

    Example:
        ```python
        client = SolanaRpcClient(
            "https://api.mainnet-beta.solana.com",
            fallback_rpc_url="https://solana-rpc.publicnode.com",
        )
        sigs = await client.get_signatures_for_address(mint, limit=10)
        tx = await client.get_transaction(sigs[0].signature)
        await client.close()
        ```
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        *,
        fallback_rpc_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> None:
        """Initialize the RPC client.

        Args:
            rpc_url: Primary Solana RPC endpoint URL.
            fallback_rpc_url: Optional fallback RPC URL for failover.
            http_client: Optional shared httpx client. Created if omitted.
            timeout: HTTP request timeout in seconds.
            max_requests_per_second: Rate limit for RPC calls.
            max_retries: Maximum attempts per endpoint.
            retry_delay_seconds: Initial delay between retries.
            commitment: Commitment level for queries.
        """
        self._rpc_url = rpc_url
        self._fallback_rpc_url = fallback_rpc_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay_seconds
        self._commitment = commitment
        self._rate_limiter = RateLimiter.create(max_requests_per_second)
        self._request_ids = itertools.count(1)

        # Track primary RPC health
        self._primary_healthy = True
        self._last_primary_check = 0.0
        self._primary_recovery_interval = 60.0

    @property
    def rpc_url(self) -> str:
        """Primary RPC endpoint."""
        return self._rpc_url

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _should_try_primary(self) -> bool:
        if self._primary_healthy or not self._fallback_rpc_url:
            return True
        now = time.monotonic()
        if now - self._last_primary_check > self._primary_recovery_interval:
            self._last_primary_check = now
            return True
        return False

    async def _post(self, url: str, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        response = await self._client.post(url, json=payload)

        if response.status_code == 429:
            raise RateLimitError(f"{method} rate limited by {url}")
        if response.status_code in RETRY_STATUS_CODES:
            raise httpx.HTTPStatusError(
                f"{method} returned HTTP {response.status_code}",
                request=response.request,
                response=response,
            )
        response.raise_for_status()

        try:
            body = response.json()
        except ValueError as e:
            raise RPCError(f"{method} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise RPCError(f"{method} returned an unexpected payload")
        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RPCError(f"{method} failed: {message}")
        return body.get("result")

    async def _call_endpoint(self, url: str, method: str, params: list[Any]) -> Any:
        last_error: Exception | None = None
        delay = self._retry_delay

        for attempt in range(self._max_retries):
            try:
                return await self._post(url, method, params)
            except (httpx.HTTPError, RateLimitError) as e:
                last_error = e
                logger.warning(
                    "RPC %s failed on %s (attempt %d/%d): %s",
                    method,
                    url,
                    attempt + 1,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(delay)
                    delay *= 2

        raise RPCError(f"RPC call {method} failed after all retries: {last_error}")

    async def call(self, method: str, params: list[Any]) -> Any:
        """Execute an RPC call with retry and failover logic.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.

        Returns:
            The ``result`` member of the response.

        Raises:
            RPCError: If the node returns an error or all endpoints fail.
        """
        await self._rate_limiter.acquire()

        last_error: RPCError | None = None
        if self._should_try_primary():
            try:
                result = await self._call_endpoint(self._rpc_url, method, params)
                self._primary_healthy = True
                return result
            except RPCError as e:
                last_error = e
                if self._fallback_rpc_url:
                    self._primary_healthy = False
                    self._last_primary_check = time.monotonic()

        if self._fallback_rpc_url:
            result = await self._call_endpoint(self._fallback_rpc_url, method, params)
            logger.info("Fallback RPC succeeded for %s", method)
            return result

        if last_error is None:
            raise RPCError(f"No RPC endpoint available for {method}")
        raise last_error

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        before: str | None = None,
        until: str | None = None,
        limit: int = 10,
    ) -> list[SignatureInfo]:
        """List signatures involving an address, newest-first.

        Args:
            address: Base-58 account address.
            before: Start searching backwards from this signature.
            until: Stop when this signature is reached (exclusive).
            limit: Maximum number of signatures to return.

        Returns:
            Signature entries ordered newest-first.
        """
        options: dict[str, Any] = {"limit": limit, "commitment": self._commitment}
        if before:
            options["before"] = before
        if until:
            options["until"] = until

        result = await self.call("getSignaturesForAddress", [address, options])
        if not isinstance(result, list):
            raise RPCError("getSignaturesForAddress returned an unexpected result")
        return [SignatureInfo.from_dict(entry) for entry in result]

    async def get_transaction(self, signature: str) -> TransactionRecord | None:
        """Fetch a confirmed transaction.

        Args:
            signature: Transaction signature.

        Returns:
            The transaction, or None if the node does not know it yet.
        """
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self._commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result:
            return None
        return TransactionRecord.from_dict(signature, result)

    async def get_account_data(self, address: str) -> bytes | None:
        """Fetch the raw data of an account.

        Args:
            address: Base-58 account address.

        Returns:
            Account data bytes, or None if the account does not exist.
        """
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        value = (result or {}).get("value")
        if not value:
            return None

        data = value.get("data")
        if isinstance(data, list) and data:
            return base64.b64decode(data[0])
        if isinstance(data, str):
            return base64.b64decode(data)
        raise RPCError(f"Unexpected account data encoding for {address}")

    async def health_check(self) -> bool:
        """Check if the RPC endpoint responds.

        Returns:
            True if healthy, False otherwise.
        """
        try:
            await self.call("getHealth", [])
            return True
        except RPCError:
            return False
