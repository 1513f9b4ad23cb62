"""Buy classification of confirmed transactions.

A transaction counts as a buy of a tracked token when:
- it executed successfully,
- its fee payer ended with less SOL than it started with, and
- a post-transaction token balance exists for the tracked mint.

The SOL amount can additionally be converted to USD and filtered
against a minimum value.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from solana_buy_tracker.classifier.models import UNKNOWN_AMOUNT, BuyEvent
from solana_buy_tracker.ledger.models import LAMPORTS_PER_SOL

if TYPE_CHECKING:
    from solana_buy_tracker.ledger.models import TransactionRecord

logger = logging.getLogger(__name__)

# Default thresholds: any positive spend, no USD filter
DEFAULT_MIN_SOL_SPENT = Decimal(0)
DEFAULT_MIN_VALUE_USD = Decimal(0)


class QuotePriceSource(Protocol):
    """Price capability needed for USD conversion."""

    async def get_quote_price(self) -> Decimal: ...


class TransactionClassifier:
    """Decides whether a transaction is a buy of a tracked token.

    Attributes:
        min_sol_spent: Spends at or below zero, or below this, are ignored.
        min_value_usd: Buys worth less than this are ignored (0 disables).
    """

    def __init__(
        self,
        price_oracle: QuotePriceSource | None = None,
        *,
        min_sol_spent: Decimal = DEFAULT_MIN_SOL_SPENT,
        min_value_usd: Decimal = DEFAULT_MIN_VALUE_USD,
    ) -> None:
        """Initialize the classifier.

        Args:
            price_oracle: Source of the SOL/USD price. Without one, no
                USD value is computed and the USD filter is inactive.
            min_sol_spent: Minimum SOL spend to count as a buy.
            min_value_usd: Minimum USD value to count as a buy.
        """
        self.price_oracle = price_oracle
        self.min_sol_spent = Decimal(min_sol_spent)
        self.min_value_usd = Decimal(min_value_usd)

    async def classify(self, record: TransactionRecord | None, token: str) -> BuyEvent | None:
        """Classify a transaction fetched for a tracked token.

        Args:
            record: Transaction as returned by the ledger, or None.
            token: Mint address the transaction was fetched for.

        Returns:
            A BuyEvent, or None if the transaction is not a qualifying buy.
        """
        if record is None or record.meta is None or not record.meta.succeeded:
            return None

        try:
            return await self._classify(record, token)
        except Exception as e:
            logger.warning("Skipping %s for %s: classification failed: %s", record.signature, token, e)
            return None

    async def _classify(self, record: TransactionRecord, token: str) -> BuyEvent | None:
        meta = record.meta
        if meta is None:
            return None

        sol_spent = self.native_spent(record)
        if sol_spent is None or sol_spent <= 0 or sol_spent < self.min_sol_spent:
            logger.debug("%s: fee payer did not spend SOL", record.signature)
            return None

        balance = next((b for b in meta.post_token_balances if b.mint == token), None)
        if balance is None:
            logger.debug("%s: no post balance for %s", record.signature, token)
            return None

        value_usd: Decimal | None = None
        if self.price_oracle is not None:
            price = await self.price_oracle.get_quote_price()
            if price > 0:
                value_usd = sol_spent * price

        if self.min_value_usd > 0 and value_usd is not None and value_usd < self.min_value_usd:
            logger.debug(
                "%s: buy worth $%.2f below $%s minimum",
                record.signature,
                value_usd,
                self.min_value_usd,
            )
            return None

        return BuyEvent(
            token=token,
            signature=record.signature,
            buyer=record.fee_payer or UNKNOWN_AMOUNT,
            sol_spent=sol_spent,
            token_amount=balance.ui_amount_string or UNKNOWN_AMOUNT,
            value_usd=value_usd,
        )

    @staticmethod
    def native_spent(record: TransactionRecord) -> Decimal | None:
        """Return the SOL the fee payer spent, or None if balances are missing."""
        meta = record.meta
        if meta is None or not meta.pre_balances or not meta.post_balances:
            return None
        delta = meta.pre_balances[0] - meta.post_balances[0]
        return Decimal(delta) / Decimal(LAMPORTS_PER_SOL)
