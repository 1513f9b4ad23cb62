"""Per-token signature watermarks.

The cursor tracker remembers, for every tracked token, the last signature
whose processing finished. It drives pagination of new signatures and
keeps a signature from being reported twice in one process lifetime.
Watermarks are written through to an optional persistent store so a
restart can resume where it left off (best-effort).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from solana_buy_tracker.ledger.models import SignatureInfo

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_PAGE_SIZE = 10
DEFAULT_MAX_PAGES = 5
DEFAULT_REDIS_KEY = "solana_buy_tracker:cursors"


class SignatureSource(Protocol):
    """Ledger capability needed to list new signatures."""

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        before: str | None = None,
        until: str | None = None,
        limit: int = 10,
    ) -> list[SignatureInfo]: ...


class CursorStore(Protocol):
    """Durable token -> signature mapping."""

    async def load(self) -> dict[str, str]: ...

    async def save(self, token: str, signature: str) -> None: ...

    async def delete(self, token: str) -> None: ...


class FileCursorStore:
    """Cursor store backed by a JSON file on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, str] = {}

    async def load(self) -> dict[str, str]:
        if not self.path.exists():
            self._data = {}
            return {}

        raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(raw, dict):
            raise ValueError(f"Cursor file {self.path} does not contain an object")
        self._data = {str(k): str(v) for k, v in raw.items() if v}
        return dict(self._data)

    async def save(self, token: str, signature: str) -> None:
        self._data[token] = signature
        self._write()

    async def delete(self, token: str) -> None:
        if self._data.pop(token, None) is not None:
            self._write()

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)


class RedisCursorStore:
    """Cursor store backed by a Redis hash."""

    def __init__(self, redis: Redis, *, key: str = DEFAULT_REDIS_KEY) -> None:
        self._redis = redis
        self._key = key

    async def load(self) -> dict[str, str]:
        raw = await self._redis.hgetall(self._key)
        return {_decode(k): _decode(v) for k, v in raw.items()}

    async def save(self, token: str, signature: str) -> None:
        await self._redis.hset(self._key, token, signature)

    async def delete(self, token: str) -> None:
        await self._redis.hdel(self._key, token)


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class CursorTracker:
    """Tracks the last processed signature of every token.

    Example:
        ```python
        tracker = CursorTracker(rpc_client, FileCursorStore("data/cursors.json"))
        await tracker.load()

        since = tracker.get_watermark(mint)
        for signature in await tracker.pending(mint, since):
            ...
            await tracker.advance(mint, signature)
        ```
    """

    def __init__(
        self,
        ledger: SignatureSource,
        store: CursorStore | None = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        """Initialize the tracker.

        Args:
            ledger: Source of signatures for an address.
            store: Optional persistent store for watermarks.
            page_size: Signatures requested per page.
            max_pages: Maximum pages walked back per call to pending().
        """
        self._ledger = ledger
        self._store = store
        self._page_size = max(1, page_size)
        self._max_pages = max(1, max_pages)
        self._watermarks: dict[str, str] = {}

    async def load(self) -> int:
        """Seed watermarks from the persistent store.

        Returns:
            Number of watermarks loaded.
        """
        if self._store is None:
            return 0
        try:
            self._watermarks.update(await self._store.load())
        except Exception as e:
            logger.warning("Could not load persisted cursors, starting fresh: %s", e)
            return 0

        logger.info("Loaded %d persisted cursors", len(self._watermarks))
        return len(self._watermarks)

    def get_watermark(self, token: str) -> str | None:
        """Return the last processed signature for a token, if any."""
        return self._watermarks.get(token)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of all watermarks."""
        return dict(self._watermarks)

    async def advance(self, token: str, signature: str) -> None:
        """Record a signature as processed for a token.

        Idempotent and last-write-wins. Store failures are logged and do
        not affect the in-memory watermark.
        """
        self._watermarks[token] = signature
        if self._store is None:
            return
        try:
            await self._store.save(token, signature)
        except Exception as e:
            logger.warning("Cursor store write failed for %s: %s", token, e)

    async def discard(self, token: str) -> None:
        """Forget the watermark for a token."""
        self._watermarks.pop(token, None)
        if self._store is None:
            return
        try:
            await self._store.delete(token)
        except Exception as e:
            logger.warning("Cursor store delete failed for %s: %s", token, e)

    async def pending(self, token: str, since: str | None) -> list[str]:
        """List signatures newer than a watermark, oldest-first.

        On the first poll of a token (``since`` is None) only the most
        recent signature is returned so adding a token does not replay
        its history.

        Args:
            token: Token mint address.
            since: Last processed signature, or None.

        Returns:
            Unseen signatures ordered oldest to newest.
        """
        if since is None:
            page = await self._ledger.get_signatures_for_address(token, limit=1)
            return [page[0].signature] if page else []

        collected: list[str] = []
        before: str | None = None

        for _ in range(self._max_pages):
            page = await self._ledger.get_signatures_for_address(
                token, before=before, until=since, limit=self._page_size
            )

            reached = False
            for info in page:
                if info.signature == since:
                    reached = True
                    break
                collected.append(info.signature)

            if reached or len(page) < self._page_size:
                break
            before = page[-1].signature
        else:
            logger.warning(
                "Stopped paging %s after %d pages; older signatures skipped",
                token,
                self._max_pages,
            )

        collected.reverse()
        return collected
