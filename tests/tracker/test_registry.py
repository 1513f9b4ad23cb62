"""Tests for the tracked-token registry."""

from pathlib import Path
from unittest.mock import patch

import pytest

from solana_buy_tracker.tracker.registry import AddResult, TokenRegistry

BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def registry(tmp_path: Path) -> TokenRegistry:
    return TokenRegistry(tmp_path / "data" / "added_tokens.txt")


class TestAdd:
    """Tests for adding tokens."""

    def test_add_persists(self, registry: TokenRegistry) -> None:
        """Added tokens are written one per line."""
        assert registry.add(BONK) is AddResult.ADDED

        assert registry.path.read_text() == f"{BONK}\n"
        assert BONK in registry

    def test_add_strips_whitespace(self, registry: TokenRegistry) -> None:
        """Surrounding whitespace is ignored."""
        assert registry.add(f"  {BONK}\n") is AddResult.ADDED
        assert registry.list() == (BONK,)

    def test_duplicate(self, registry: TokenRegistry) -> None:
        """Adding twice reports a duplicate."""
        registry.add(BONK)

        assert registry.add(BONK) is AddResult.DUPLICATE
        assert len(registry) == 1

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "not-an-address",
            "0OIl0OIl0OIl0OIl0OIl0OIl0OIl0OIl",
            BONK + "x",
            "1" * 31,
        ],
    )
    def test_invalid(self, registry: TokenRegistry, address: str) -> None:
        """Malformed addresses are rejected and nothing is written."""
        assert registry.add(address) is AddResult.INVALID
        assert not registry.path.exists()


class TestRemoveAndList:
    """Tests for removing and listing tokens."""

    def test_list_preserves_insertion_order(self, registry: TokenRegistry) -> None:
        """Tokens are listed in the order they were added."""
        registry.add(USDC)
        registry.add(BONK)

        assert registry.list() == (USDC, BONK)

    def test_remove(self, registry: TokenRegistry) -> None:
        """Removed tokens disappear from list and file."""
        registry.add(USDC)
        registry.add(BONK)

        assert registry.remove(USDC) is True
        assert registry.list() == (BONK,)
        assert registry.path.read_text() == f"{BONK}\n"

    def test_remove_unknown(self, registry: TokenRegistry) -> None:
        """Removing an untracked token returns False."""
        assert registry.remove(BONK) is False

    def test_list_is_snapshot(self, registry: TokenRegistry) -> None:
        """Mutation during iteration does not affect the snapshot."""
        registry.add(USDC)
        registry.add(BONK)

        seen = []
        for token in registry.list():
            registry.remove(token)
            seen.append(token)

        assert seen == [USDC, BONK]
        assert registry.list() == ()


class TestFlushFailure:
    """Tests for mutations whose write to disk fails."""

    def test_add_rolls_back(self, registry: TokenRegistry) -> None:
        registry.add(USDC)

        with (
            patch.object(TokenRegistry, "_flush", side_effect=OSError("disk full")),
            pytest.raises(OSError, match="disk full"),
        ):
            registry.add(BONK)

        assert BONK not in registry
        assert registry.list() == (USDC,)

    def test_remove_rolls_back(self, registry: TokenRegistry) -> None:
        """The token stays tracked, in its original position."""
        registry.add(BONK)
        registry.add(USDC)

        with (
            patch.object(TokenRegistry, "_flush", side_effect=OSError("disk full")),
            pytest.raises(OSError),
        ):
            registry.remove(BONK)

        assert registry.list() == (BONK, USDC)
        assert registry.path.read_text() == f"{BONK}\n{USDC}\n"


class TestLoad:
    """Tests for loading from disk."""

    def test_missing_file(self, registry: TokenRegistry) -> None:
        """A missing file means no tokens."""
        assert registry.load() == 0

    def test_load_skips_malformed_lines(self, tmp_path: Path) -> None:
        """Blank and malformed lines are skipped."""
        path = tmp_path / "added_tokens.txt"
        path.write_text(f"{BONK}\n\ngarbage\n  {USDC}  \n{BONK}\n")

        registry = TokenRegistry(path)

        assert registry.load() == 2
        assert registry.list() == (BONK, USDC)
