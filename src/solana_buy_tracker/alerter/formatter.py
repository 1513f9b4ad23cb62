"""Alert message formatter.

This module turns a BuyEvent plus its enrichment (token identity and
market snapshot) into a human-readable alert for Telegram and plain text.
"""

from __future__ import annotations

import html
from decimal import Decimal

from solana_buy_tracker.alerter.models import FormattedAlert
from solana_buy_tracker.classifier.models import BuyEvent
from solana_buy_tracker.enrich.models import MarketSnapshot, TokenIdentity

SOLSCAN_TX_URL = "https://solscan.io/tx/{signature}"
SOLSCAN_ACCOUNT_URL = "https://solscan.io/account/{address}"
DEXSCREENER_TOKEN_URL = "https://dexscreener.com/solana/{address}"

NOT_AVAILABLE = "N/A"


def format_sol(amount: Decimal) -> str:
    """Format a SOL amount with 4 decimal places."""
    return f"{amount:.4f}"


def format_usd(amount: Decimal) -> str:
    """Format a USD amount with commas and 2 decimal places."""
    return f"${amount:,.2f}"


def format_market_cap(snapshot: MarketSnapshot | None) -> str:
    """Format a market cap, or N/A when unknown."""
    if snapshot is None or snapshot.market_cap is None:
        return NOT_AVAILABLE
    return f"${snapshot.market_cap:,.0f}"


def format_liquidity(snapshot: MarketSnapshot | None) -> str:
    """Format pool liquidity in USD, or N/A when unknown."""
    if snapshot is None or snapshot.liquidity_usd is None:
        return NOT_AVAILABLE
    return f"${snapshot.liquidity_usd:,.0f}"


class AlertFormatter:
    """Formats buy events into alert messages."""

    def __init__(self, *, buy_emoji: str = "🟢") -> None:
        self.buy_emoji = buy_emoji

    def format(
        self,
        event: BuyEvent,
        identity: TokenIdentity,
        market: MarketSnapshot | None = None,
    ) -> FormattedAlert:
        """Format a buy event.

        Args:
            event: The classified buy.
            identity: Resolved name and symbol of the token.
            market: Optional market data for the footer.

        Returns:
            FormattedAlert ready for dispatch.
        """
        links = {
            "transaction": SOLSCAN_TX_URL.format(signature=event.signature),
            "chart": DEXSCREENER_TOKEN_URL.format(address=event.token),
            "buyer": SOLSCAN_ACCOUNT_URL.format(address=event.buyer),
        }
        title = f"{self.buy_emoji} Buy Detected: {identity.symbol}"

        return FormattedAlert(
            title=title,
            telegram_html=self._build_telegram_html(event, identity, market, links),
            plain_text=self._build_plain_text(event, identity, market, links),
            links=links,
        )

    def _spent_line(self, event: BuyEvent) -> str:
        spent = f"{format_sol(event.sol_spent)} SOL"
        if event.value_usd is not None:
            spent += f" ({format_usd(event.value_usd)})"
        return spent

    def _build_telegram_html(
        self,
        event: BuyEvent,
        identity: TokenIdentity,
        market: MarketSnapshot | None,
        links: dict[str, str],
    ) -> str:
        esc = html.escape
        lines = [
            f"{self.buy_emoji} <b>Buy Detected!</b>",
            "",
            f"<b>Token:</b> {esc(identity.name)} ({esc(identity.symbol)})",
            f"<b>Spent:</b> {esc(self._spent_line(event))}",
            f"<b>Received:</b> {esc(event.token_amount)} {esc(identity.symbol)}",
            f"<b>Buyer:</b> <a href=\"{esc(links['buyer'])}\">"
            f"<code>{esc(event.buyer_short)}</code></a>",
            f"<b>Market Cap:</b> {esc(format_market_cap(market))}",
            f"<b>Liquidity:</b> {esc(format_liquidity(market))}",
            "",
            f"<a href=\"{esc(links['transaction'])}\">View Transaction</a> | "
            f"<a href=\"{esc(links['chart'])}\">DexScreener</a>",
        ]
        return "\n".join(lines)

    def _build_plain_text(
        self,
        event: BuyEvent,
        identity: TokenIdentity,
        market: MarketSnapshot | None,
        links: dict[str, str],
    ) -> str:
        lines = [
            "BUY DETECTED",
            "=" * 30,
            f"Token: {identity.name} ({identity.symbol})",
            f"Spent: {self._spent_line(event)}",
            f"Received: {event.token_amount} {identity.symbol}",
            f"Buyer: {event.buyer}",
            f"Market Cap: {format_market_cap(market)}",
            f"Liquidity: {format_liquidity(market)}",
            "",
            f"Transaction: {links['transaction']}",
            f"Chart: {links['chart']}",
        ]
        return "\n".join(lines)
