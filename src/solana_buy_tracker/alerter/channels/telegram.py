"""Telegram Bot API channel implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from solana_buy_tracker.alerter.models import FormattedAlert

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot{token}/{method}"


class TelegramApiError(Exception):
    """Raised when the Bot API answers with ``ok: false``."""


class TelegramChannel:
    """Telegram Bot API channel for sending alerts and command replies.

    Sends messages via the Bot API with rate limiting and retry support.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        rate_limit_per_minute: int = 20,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
    ) -> None:
        """Initialize Telegram channel.

        Args:
            bot_token: Telegram bot token.
            chat_id: Chat that receives buy alerts.
            rate_limit_per_minute: Maximum alerts per minute.
            max_retries: Maximum retry attempts on failure.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
        """
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.rate_limit_per_minute = rate_limit_per_minute
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.name = "telegram"

        self._request_times: list[float] = []
        self._lock = asyncio.Lock()

    def _url(self, method: str) -> str:
        return TELEGRAM_API_BASE.format(token=self.bot_token, method=method)

    async def _wait_for_rate_limit(self) -> None:
        async with self._lock:
            now = asyncio.get_running_loop().time()
            self._request_times = [t for t in self._request_times if now - t < 60]

            if len(self._request_times) >= self.rate_limit_per_minute:
                wait_time = 60 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.debug("Telegram rate limit hit, waiting %.2fs", wait_time)
                    await asyncio.sleep(wait_time)

            self._request_times.append(asyncio.get_running_loop().time())

    async def _call(
        self, method: str, payload: dict[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
            response = await client.post(self._url(method), json=payload)
            result: dict[str, Any] = response.json()
            return result

    async def send(self, alert: FormattedAlert) -> bool:
        """Send a buy alert to the alert chat.

        Args:
            alert: Formatted alert with telegram_html.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        await self._wait_for_rate_limit()
        return await self.send_message(self.chat_id, alert.telegram_html, parse_mode="HTML")

    async def send_message(
        self,
        chat_id: str | int,
        text: str,
        *,
        parse_mode: str | None = None,
    ) -> bool:
        """Send a text message with retries.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        for attempt in range(self.max_retries):
            try:
                result = await self._call("sendMessage", payload)

                if result.get("ok"):
                    logger.debug("Telegram message delivered to %s", chat_id)
                    return True

                error_code = result.get("error_code", 0)
                description = result.get("description", "Unknown error")

                if error_code == 429:
                    retry_after = result.get("parameters", {}).get("retry_after", 1)
                    logger.warning("Telegram rate limited, retry after %ss", retry_after)
                    await asyncio.sleep(retry_after)
                    continue

                logger.error("Telegram API error: %s - %s", error_code, description)
                if 400 <= int(error_code) < 500:
                    # Bad request, blocked bot or wrong chat: retrying will not help
                    return False

            except httpx.TimeoutException:
                logger.warning("Telegram API timeout (attempt %d)", attempt + 1)
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Telegram API error: %s", e)

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay * (2**attempt))

        logger.error("Telegram delivery failed after all retries")
        return False

    async def get_updates(
        self, offset: int | None = None, *, poll_timeout: int = 30
    ) -> list[dict[str, Any]]:
        """Long-poll the Bot API for new updates.

        Args:
            offset: Identifier of the first update to return.
            poll_timeout: Server-side long-poll timeout in seconds.

        Returns:
            List of update objects.

        Raises:
            TelegramApiError: If the API reports an error.
            httpx.HTTPError: On transport failures.
        """
        payload: dict[str, Any] = {"timeout": poll_timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset

        result = await self._call("getUpdates", payload, timeout=poll_timeout + self.timeout)
        if not result.get("ok"):
            raise TelegramApiError(
                f"getUpdates failed: {result.get('error_code')} - {result.get('description')}"
            )
        updates: list[dict[str, Any]] = result.get("result") or []
        return updates
