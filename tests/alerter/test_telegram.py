"""Tests for the Telegram Bot API channel."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from solana_buy_tracker.alerter.channels.telegram import TelegramApiError, TelegramChannel
from solana_buy_tracker.alerter.models import FormattedAlert

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sample_alert() -> FormattedAlert:
    return FormattedAlert(
        title="🟢 Buy Detected: BONK",
        telegram_html="<b>Spent:</b> 0.0500 SOL ($1.00)",
        plain_text="Spent: 0.0500 SOL ($1.00)",
    )


@pytest.fixture
def channel() -> TelegramChannel:
    return TelegramChannel(
        bot_token="123456:ABC-DEF",
        chat_id="-1001234567890",
        max_retries=2,
        retry_delay=0.01,
    )


def mock_http(*payloads: Any) -> tuple[MagicMock, AsyncMock]:
    """Patch target for httpx.AsyncClient answering with the given JSON bodies."""
    responses = []
    for payload in payloads:
        if isinstance(payload, Exception):
            responses.append(payload)
            continue
        response = MagicMock()
        response.json.return_value = payload
        responses.append(response)

    mock_client = AsyncMock()
    mock_client.post.side_effect = responses
    mock_client.__aenter__.return_value = mock_client
    mock_client.__aexit__.return_value = None

    mock_client_class = MagicMock(return_value=mock_client)
    return mock_client_class, mock_client


# ============================================================================
# TelegramChannel Tests
# ============================================================================


class TestSend:
    """Tests for alert delivery."""

    def test_init(self, channel: TelegramChannel) -> None:
        assert channel.bot_token == "123456:ABC-DEF"
        assert channel.chat_id == "-1001234567890"
        assert channel.name == "telegram"

    @pytest.mark.asyncio
    async def test_send_success(
        self, channel: TelegramChannel, sample_alert: FormattedAlert
    ) -> None:
        """Alerts are posted as HTML to the alert chat."""
        client_class, client = mock_http({"ok": True})

        with patch("httpx.AsyncClient", client_class):
            assert await channel.send(sample_alert) is True

        url = client.post.call_args.args[0]
        payload = client.post.call_args.kwargs["json"]
        assert url == "https://api.telegram.org/bot123456:ABC-DEF/sendMessage"
        assert payload["chat_id"] == "-1001234567890"
        assert payload["parse_mode"] == "HTML"
        assert "0.0500" in payload["text"]

    @pytest.mark.asyncio
    async def test_send_rate_limited(
        self, channel: TelegramChannel, sample_alert: FormattedAlert
    ) -> None:
        """A 429 is retried after retry_after."""
        client_class, client = mock_http(
            {"ok": False, "error_code": 429, "parameters": {"retry_after": 0.01}},
            {"ok": True},
        )

        with patch("httpx.AsyncClient", client_class):
            assert await channel.send(sample_alert) is True
        assert client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(
        self, channel: TelegramChannel, sample_alert: FormattedAlert
    ) -> None:
        """A 400 fails immediately."""
        client_class, client = mock_http(
            {"ok": False, "error_code": 400, "description": "Bad Request: chat not found"}
        )

        with patch("httpx.AsyncClient", client_class):
            assert await channel.send(sample_alert) is False
        assert client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_retries(
        self, channel: TelegramChannel, sample_alert: FormattedAlert
    ) -> None:
        """Network failures are retried and then reported as False."""
        client_class, client = mock_http(
            httpx.ConnectError("refused"), httpx.ReadTimeout("slow")
        )

        with patch("httpx.AsyncClient", client_class):
            assert await channel.send(sample_alert) is False
        assert client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_send_message_plain(self, channel: TelegramChannel) -> None:
        """Command replies are sent without a parse mode."""
        client_class, client = mock_http({"ok": True})

        with patch("httpx.AsyncClient", client_class):
            assert await channel.send_message(42, "hello") is True

        payload = client.post.call_args.kwargs["json"]
        assert payload["chat_id"] == 42
        assert "parse_mode" not in payload


class TestGetUpdates:
    """Tests for long polling."""

    @pytest.mark.asyncio
    async def test_returns_updates(self, channel: TelegramChannel) -> None:
        updates = [{"update_id": 7, "message": {"text": "/list", "chat": {"id": 1}}}]
        client_class, client = mock_http({"ok": True, "result": updates})

        with patch("httpx.AsyncClient", client_class):
            assert await channel.get_updates(7, poll_timeout=5) == updates

        payload = client.post.call_args.kwargs["json"]
        assert payload["offset"] == 7
        assert payload["timeout"] == 5

    @pytest.mark.asyncio
    async def test_api_error(self, channel: TelegramChannel) -> None:
        client_class, _ = mock_http({"ok": False, "error_code": 401, "description": "Unauthorized"})

        with patch("httpx.AsyncClient", client_class), pytest.raises(TelegramApiError):
            await channel.get_updates()
