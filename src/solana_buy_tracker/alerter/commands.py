"""Telegram command listener for managing tracked tokens.

Supported commands:
- ``/add <mint>``: start tracking a token
- ``/remove <mint>``: stop tracking a token
- ``/list``: show tracked tokens
- ``/help`` or ``/start``: show usage
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import httpx

from solana_buy_tracker.alerter.channels.telegram import TelegramApiError
from solana_buy_tracker.tracker.registry import AddResult

if TYPE_CHECKING:
    from solana_buy_tracker.alerter.channels.telegram import TelegramChannel
    from solana_buy_tracker.tracker.cursor import CursorTracker
    from solana_buy_tracker.tracker.registry import TokenRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT = 30
DEFAULT_ERROR_BACKOFF_SECONDS = 5.0

HELP_TEXT = (
    "Solana Buy Bot commands:\n"
    "/add <mint> - start tracking a token\n"
    "/remove <mint> - stop tracking a token\n"
    "/list - show tracked tokens"
)

SAVE_FAILED_REPLY = "❌ Could not save tracked tokens"


def parse_command(text: str) -> tuple[str, str] | None:
    """Split a message into a command name and its argument.

    ``/add@MyBot ABC`` parses to ``("add", "ABC")``. Returns None for
    messages that are not commands.
    """
    text = text.strip()
    if not text.startswith("/"):
        return None

    head, _, arg = text.partition(" ")
    command = head[1:].split("@", 1)[0].lower()
    if not command:
        return None
    return command, arg.strip()


class CommandHandler:
    """Applies bot commands to the token registry."""

    def __init__(self, registry: TokenRegistry, cursors: CursorTracker) -> None:
        self._registry = registry
        self._cursors = cursors

    async def handle(self, text: str) -> str | None:
        """Handle a message and return the reply, or None to stay silent."""
        parsed = parse_command(text)
        if parsed is None:
            return None

        command, arg = parsed
        if command == "add":
            return await self._add(arg)
        if command == "remove":
            return await self._remove(arg)
        if command == "list":
            return self._list()
        if command in ("help", "start"):
            return HELP_TEXT
        return None

    async def _add(self, address: str) -> str:
        if not address:
            return "Usage: /add <mint address>"

        try:
            result = self._registry.add(address)
        except OSError as e:
            logger.error("Failed to save tracked tokens after /add: %s", e)
            return f"{SAVE_FAILED_REPLY}: {e}"
        if result is AddResult.INVALID:
            return (
                f"❌ Invalid token address: {address}\n"
                "Expected a base-58 Solana mint address (32-44 characters)."
            )
        if result is AddResult.DUPLICATE:
            return "⚠️ Token already being tracked."

        # A re-added token starts from its latest signature
        await self._cursors.discard(address.strip())
        return f"✅ Token added: {address.strip()}"

    async def _remove(self, address: str) -> str:
        if not address:
            return "Usage: /remove <mint address>"

        try:
            removed = self._registry.remove(address)
        except OSError as e:
            logger.error("Failed to save tracked tokens after /remove: %s", e)
            return f"{SAVE_FAILED_REPLY}: {e}"
        if not removed:
            return f"⚠️ Token is not being tracked: {address}"

        await self._cursors.discard(address.strip())
        return f"❌ Token removed: {address.strip()}"

    def _list(self) -> str:
        tokens = self._registry.list()
        if not tokens:
            return "No tokens are currently being tracked."
        return "Currently tracking:\n" + "\n".join(tokens)


class TelegramCommandListener:
    """Long-polls Telegram for commands and replies in the same chat.

    Example:
        ```python
        listener = TelegramCommandListener(channel, CommandHandler(registry, cursors))
        await listener.start()
        ...
        await listener.stop()
        ```
    """

    def __init__(
        self,
        channel: TelegramChannel,
        handler: CommandHandler,
        *,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT,
        error_backoff_seconds: float = DEFAULT_ERROR_BACKOFF_SECONDS,
    ) -> None:
        self._channel = channel
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._error_backoff = error_backoff_seconds
        self._offset: int | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Telegram command listener started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Telegram command listener stopped")

    async def _poll_loop(self) -> None:
        while True:
            try:
                updates = await self._channel.get_updates(
                    self._offset, poll_timeout=self._poll_timeout
                )
            except (httpx.HTTPError, TelegramApiError, ValueError) as e:
                logger.warning("Telegram getUpdates failed: %s", e)
                await asyncio.sleep(self._error_backoff)
                continue

            for update in updates:
                try:
                    await self.process_update(update)
                except Exception as e:
                    logger.error("Failed to handle Telegram update: %s", e)

    async def process_update(self, update: dict[str, Any]) -> None:
        """Handle a single Bot API update."""
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self._offset = update_id + 1

        message = update.get("message") or {}
        text = message.get("text")
        chat_id = (message.get("chat") or {}).get("id")
        if not text or chat_id is None:
            return

        reply = await self._handler.handle(text)
        if reply is None:
            return

        logger.info("Command from chat %s: %s", chat_id, text.split(" ", 1)[0])
        await self._channel.send_message(chat_id, reply)
