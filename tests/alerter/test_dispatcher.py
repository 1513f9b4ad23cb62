"""Tests for the alert dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from solana_buy_tracker.alerter.dispatcher import AlertDispatcher, DispatchResult
from solana_buy_tracker.alerter.models import FormattedAlert

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sample_alert() -> FormattedAlert:
    """Create a sample formatted alert."""
    return FormattedAlert(
        title="🟢 Buy Detected: BONK",
        telegram_html="<b>Buy Detected!</b>",
        plain_text="BUY DETECTED",
        links={"transaction": "https://solscan.io/tx/abc"},
    )


def make_channel(name: str, *, result: bool = True) -> MagicMock:
    channel = MagicMock()
    channel.name = name
    channel.send = AsyncMock(return_value=result)
    return channel


# ============================================================================
# DispatchResult Tests
# ============================================================================


class TestDispatchResult:
    """Tests for DispatchResult."""

    def test_all_succeeded(self) -> None:
        result = DispatchResult(success_count=1, failure_count=0)

        assert result.all_succeeded is True

    def test_partial_failure(self) -> None:
        result = DispatchResult(success_count=1, failure_count=1)

        assert result.all_succeeded is False

    def test_nothing_sent(self) -> None:
        """No channels is not a success."""
        result = DispatchResult(success_count=0, failure_count=0)

        assert result.all_succeeded is False


# ============================================================================
# AlertDispatcher Tests
# ============================================================================


class TestAlertDispatcher:
    """Tests for AlertDispatcher."""

    @pytest.mark.asyncio
    async def test_dispatch_to_all_channels(self, sample_alert: FormattedAlert) -> None:
        telegram = make_channel("telegram")
        backup = make_channel("backup")
        dispatcher = AlertDispatcher([telegram, backup])

        result = await dispatcher.dispatch(sample_alert)

        assert result.success_count == 2
        assert result.channel_results == {"telegram": True, "backup": True}
        telegram.send.assert_awaited_once_with(sample_alert)

    @pytest.mark.asyncio
    async def test_channel_failure(self, sample_alert: FormattedAlert) -> None:
        dispatcher = AlertDispatcher([make_channel("telegram", result=False)])

        result = await dispatcher.dispatch(sample_alert)

        assert result.all_succeeded is False
        assert result.channel_results == {"telegram": False}

    @pytest.mark.asyncio
    async def test_channel_exception_is_contained(self, sample_alert: FormattedAlert) -> None:
        """A raising channel is reported as failed."""
        broken = make_channel("telegram")
        broken.send.side_effect = RuntimeError("network down")
        dispatcher = AlertDispatcher([broken, make_channel("backup")])

        result = await dispatcher.dispatch(sample_alert)

        assert result.success_count == 1
        assert result.failure_count == 1

    @pytest.mark.asyncio
    async def test_no_channels(self, sample_alert: FormattedAlert) -> None:
        result = await AlertDispatcher([]).dispatch(sample_alert)

        assert result.all_succeeded is False

    @pytest.mark.asyncio
    async def test_dry_run(self, sample_alert: FormattedAlert) -> None:
        """Dry runs succeed without touching channels."""
        telegram = make_channel("telegram")
        dispatcher = AlertDispatcher([telegram], dry_run=True)

        result = await dispatcher.dispatch(sample_alert)

        assert result.all_succeeded is True
        telegram.send.assert_not_awaited()
