"""Classification layer - buy detection for tracked tokens."""

from solana_buy_tracker.classifier.buys import TransactionClassifier
from solana_buy_tracker.classifier.models import UNKNOWN_AMOUNT, BuyEvent

__all__ = [
    "UNKNOWN_AMOUNT",
    "BuyEvent",
    "TransactionClassifier",
]
