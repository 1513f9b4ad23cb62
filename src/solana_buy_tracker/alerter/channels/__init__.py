"""Alert channel implementations."""

from solana_buy_tracker.alerter.channels.telegram import TelegramApiError, TelegramChannel

__all__ = [
    "TelegramApiError",
    "TelegramChannel",
]
