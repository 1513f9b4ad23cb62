"""Alerting layer - buy notifications and bot commands."""

from solana_buy_tracker.alerter.channels.telegram import TelegramApiError, TelegramChannel
from solana_buy_tracker.alerter.commands import (
    CommandHandler,
    TelegramCommandListener,
    parse_command,
)
from solana_buy_tracker.alerter.dispatcher import (
    AlertChannel,
    AlertDispatcher,
    DispatchResult,
)
from solana_buy_tracker.alerter.formatter import AlertFormatter
from solana_buy_tracker.alerter.models import FormattedAlert

__all__ = [
    "AlertChannel",
    "AlertDispatcher",
    "AlertFormatter",
    "CommandHandler",
    "DispatchResult",
    "FormattedAlert",
    "TelegramApiError",
    "TelegramChannel",
    "TelegramCommandListener",
    "parse_command",
]
