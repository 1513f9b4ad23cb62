"""Data models for the classifier module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

UNKNOWN_AMOUNT = "unknown"


@dataclass(frozen=True)
class BuyEvent:
    """A transaction classified as a purchase of a tracked token.

    Attributes:
        token: Mint address of the tracked token.
        signature: Transaction signature.
        buyer: Fee payer that initiated the transaction.
        sol_spent: Native amount spent by the buyer, in SOL.
        token_amount: Received amount as provided by the ledger, or
            ``"unknown"``.
        value_usd: USD value of ``sol_spent``, or None if the price is unknown.
        detected_at: When the event was classified.
    """

    token: str
    signature: str
    buyer: str
    sol_spent: Decimal
    token_amount: str = UNKNOWN_AMOUNT
    value_usd: Decimal | None = None
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def buyer_short(self) -> str:
        """Return the buyer address shortened for display."""
        if len(self.buyer) > 8:
            return f"{self.buyer[:4]}...{self.buyer[-4:]}"
        return self.buyer

