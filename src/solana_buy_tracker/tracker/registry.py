"""Tracked-token registry persisted as a newline-separated file."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path

from solana_buy_tracker.enrich.validation import is_valid_mint_address

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = "data/added_tokens.txt"


class AddResult(str, Enum):
    """Outcome of adding a token to the registry."""

    ADDED = "added"
    DUPLICATE = "duplicate"
    INVALID = "invalid"


class TokenRegistry:
    """Ordered set of tracked token mint addresses.

    Insertion order is preserved for listing. Every mutation is flushed to
    disk. ``list()`` returns an immutable snapshot, so callers may iterate
    it while tokens are added or removed. A mutation whose flush fails
    leaves the in-memory set unchanged and re-raises the OSError.
    """

    def __init__(self, path: str | Path = DEFAULT_REGISTRY_PATH) -> None:
        self.path = Path(path)
        self._tokens: dict[str, None] = {}

    def load(self) -> int:
        """Read tracked tokens from disk.

        Lines that are not valid mint addresses are skipped with a warning.

        Returns:
            Number of tokens loaded.
        """
        self._tokens.clear()
        if not self.path.exists():
            return 0

        for line in self.path.read_text(encoding="utf-8").splitlines():
            address = line.strip()
            if not address:
                continue
            if not is_valid_mint_address(address):
                logger.warning("Skipping malformed address in %s: %r", self.path, address)
                continue
            self._tokens[address] = None

        logger.info("Loaded %d tracked tokens from %s", len(self._tokens), self.path)
        return len(self._tokens)

    def add(self, address: str) -> AddResult:
        """Start tracking a token."""
        address = address.strip()
        if not is_valid_mint_address(address):
            return AddResult.INVALID
        if address in self._tokens:
            return AddResult.DUPLICATE

        tokens = {**self._tokens, address: None}
        self._flush(tokens)
        self._tokens = tokens
        logger.info("Now tracking %s", address)
        return AddResult.ADDED

    def remove(self, address: str) -> bool:
        """Stop tracking a token. Returns True if it was tracked."""
        address = address.strip()
        if address not in self._tokens:
            return False

        tokens = {token: None for token in self._tokens if token != address}
        self._flush(tokens)
        self._tokens = tokens
        logger.info("Stopped tracking %s", address)
        return True

    def list(self) -> tuple[str, ...]:
        """Return tracked tokens in insertion order."""
        return tuple(self._tokens)

    def __contains__(self, address: object) -> bool:
        return address in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def _flush(self, tokens: dict[str, None]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        content = "".join(f"{token}\n" for token in tokens)
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, self.path)
