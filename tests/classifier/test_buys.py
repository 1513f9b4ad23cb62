"""Tests for buy classification."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from solana_buy_tracker.classifier.buys import TransactionClassifier
from solana_buy_tracker.classifier.models import UNKNOWN_AMOUNT, BuyEvent
from solana_buy_tracker.ledger.models import TokenBalance, TransactionMeta, TransactionRecord

MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
OTHER_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
BUYER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


# ============================================================================
# Fixtures
# ============================================================================


def make_record(
    *,
    pre: int = 1_000_000_000,
    post: int = 950_000_000,
    mint: str = MINT,
    amount: str | None = "10",
    err: object = None,
    signature: str = "sig1",
) -> TransactionRecord:
    return TransactionRecord(
        signature=signature,
        account_keys=(BUYER, "TokenAccount"),
        meta=TransactionMeta(
            err=err,
            pre_balances=(pre, 0),
            post_balances=(post, 0),
            post_token_balances=(
                TokenBalance(account_index=1, mint=mint, owner=BUYER, ui_amount_string=amount),
            ),
        ),
    )


def price_oracle(price: str) -> AsyncMock:
    oracle = AsyncMock()
    oracle.get_quote_price.return_value = Decimal(price)
    return oracle


# ============================================================================
# TransactionClassifier Tests
# ============================================================================


class TestNonBuys:
    """Transactions that must never produce a BuyEvent."""

    async def test_missing_record(self) -> None:
        assert await TransactionClassifier().classify(None, MINT) is None

    async def test_missing_meta(self) -> None:
        record = TransactionRecord(signature="sig1", account_keys=(BUYER,))

        assert await TransactionClassifier().classify(record, MINT) is None

    async def test_failed_execution(self) -> None:
        record = make_record(err={"InstructionError": [2, {"Custom": 6001}]})

        assert await TransactionClassifier().classify(record, MINT) is None

    @pytest.mark.parametrize("post", [1_000_000_000, 1_200_000_000])
    async def test_non_positive_spend(self, post: int) -> None:
        """A fee payer that did not lose SOL is not buying."""
        record = make_record(post=post)

        assert await TransactionClassifier().classify(record, MINT) is None

    async def test_no_balance_for_token(self) -> None:
        """Balances for other mints do not count."""
        record = make_record(mint=OTHER_MINT)

        assert await TransactionClassifier().classify(record, MINT) is None

    async def test_below_min_sol_spent(self) -> None:
        classifier = TransactionClassifier(min_sol_spent=Decimal("0.1"))

        assert await classifier.classify(make_record(), MINT) is None

    async def test_missing_balances(self) -> None:
        record = TransactionRecord(
            signature="sig1", account_keys=(BUYER,), meta=TransactionMeta()
        )

        assert await TransactionClassifier().classify(record, MINT) is None


class TestBuys:
    """Transactions classified as buys."""

    async def test_basic_buy(self) -> None:
        """0.05 SOL spent with a token balance is a buy."""
        event = await TransactionClassifier().classify(make_record(), MINT)

        assert isinstance(event, BuyEvent)
        assert event.token == MINT
        assert event.signature == "sig1"
        assert event.buyer == BUYER
        assert event.sol_spent == Decimal("0.05")
        assert event.token_amount == "10"
        assert event.value_usd is None

    async def test_usd_value(self) -> None:
        """The spend is converted at the oracle price."""
        classifier = TransactionClassifier(price_oracle("20"))

        event = await classifier.classify(make_record(), MINT)

        assert event is not None
        assert event.value_usd == Decimal("1.00")

    async def test_unknown_amount_passes_through(self) -> None:
        event = await TransactionClassifier().classify(make_record(amount=None), MINT)

        assert event is not None
        assert event.token_amount == UNKNOWN_AMOUNT

    async def test_at_min_sol_spent(self) -> None:
        """The SOL threshold is inclusive."""
        classifier = TransactionClassifier(min_sol_spent=Decimal("0.05"))

        assert await classifier.classify(make_record(), MINT) is not None


class TestUsdFilter:
    """Tests for the minimum USD value filter."""

    async def test_below_threshold_suppressed(self) -> None:
        """$1.00 is below a $5 minimum."""
        classifier = TransactionClassifier(price_oracle("20"), min_value_usd=Decimal(5))

        assert await classifier.classify(make_record(), MINT) is None

    async def test_equal_passes(self) -> None:
        """A value equal to the minimum is reported."""
        classifier = TransactionClassifier(price_oracle("100"), min_value_usd=Decimal(5))

        event = await classifier.classify(make_record(), MINT)

        assert event is not None
        assert event.value_usd == Decimal(5)

    async def test_above_threshold(self) -> None:
        """0.5 SOL at $20 is $10."""
        classifier = TransactionClassifier(price_oracle("20"), min_value_usd=Decimal(5))

        event = await classifier.classify(make_record(post=500_000_000), MINT)

        assert event is not None
        assert event.value_usd == Decimal(10)

    async def test_unknown_price_does_not_filter(self) -> None:
        """A price of 0 means unknown: no value, no filtering."""
        classifier = TransactionClassifier(price_oracle("0"), min_value_usd=Decimal(5))

        event = await classifier.classify(make_record(), MINT)

        assert event is not None
        assert event.value_usd is None

    async def test_oracle_error_skips_signature(self) -> None:
        """Unexpected errors are logged and the signature is skipped."""
        oracle = AsyncMock()
        oracle.get_quote_price.side_effect = RuntimeError("boom")
        classifier = TransactionClassifier(oracle)

        assert await classifier.classify(make_record(), MINT) is None


class TestBuyEvent:
    """Tests for the BuyEvent model."""

    def test_buyer_short(self) -> None:
        event = BuyEvent(token=MINT, signature="s", buyer=BUYER, sol_spent=Decimal(1))

        assert event.buyer_short == "9WzD...AWWM"
