"""Tracking state - registry of watched tokens and per-token cursors."""

from solana_buy_tracker.tracker.cursor import (
    CursorStore,
    CursorTracker,
    FileCursorStore,
    RedisCursorStore,
)
from solana_buy_tracker.tracker.registry import AddResult, TokenRegistry

__all__ = [
    "AddResult",
    "CursorStore",
    "CursorTracker",
    "FileCursorStore",
    "RedisCursorStore",
    "TokenRegistry",
]
