"""Alert dispatcher for multi-channel delivery."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from solana_buy_tracker.alerter.models import FormattedAlert

logger = logging.getLogger(__name__)


class AlertChannel(Protocol):
    """Protocol for alert delivery channels."""

    name: str

    async def send(self, alert: FormattedAlert) -> bool:
        """Send alert to channel. Returns True on success."""
        ...


@dataclass
class DispatchResult:
    """Result of dispatching an alert to all channels."""

    success_count: int
    failure_count: int
    channel_results: dict[str, bool] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def all_succeeded(self) -> bool:
        """Return True if all channels succeeded."""
        return self.failure_count == 0 and self.success_count > 0


class AlertDispatcher:
    """Sends alerts to every configured channel concurrently.

    Channel errors are logged and reported as failures; they never
    propagate. In dry-run mode alerts are logged instead of sent.
    """

    def __init__(self, channels: list[AlertChannel], *, dry_run: bool = False) -> None:
        """Initialize the dispatcher.

        Args:
            channels: Alert channels to dispatch to.
            dry_run: Log alerts instead of delivering them.
        """
        self.channels = channels
        self.dry_run = dry_run

    async def _send_to_channel(
        self, channel: AlertChannel, alert: FormattedAlert
    ) -> tuple[str, bool]:
        try:
            return (channel.name, await channel.send(alert))
        except Exception as e:
            logger.error("Error sending to %s: %s", channel.name, e)
            return (channel.name, False)

    async def dispatch(self, alert: FormattedAlert) -> DispatchResult:
        """Dispatch alert to all channels concurrently.

        Args:
            alert: Formatted alert to send.

        Returns:
            DispatchResult with per-channel status.
        """
        if self.dry_run:
            logger.info("[dry-run] %s\n%s", alert.title, alert.plain_text)
            return DispatchResult(
                success_count=1, failure_count=0, channel_results={"dry-run": True}
            )

        if not self.channels:
            logger.warning("No channels configured for dispatch")
            return DispatchResult(success_count=0, failure_count=0)

        results = await asyncio.gather(
            *(self._send_to_channel(ch, alert) for ch in self.channels)
        )

        channel_results = dict(results)
        success_count = sum(1 for ok in channel_results.values() if ok)
        result = DispatchResult(
            success_count=success_count,
            failure_count=len(channel_results) - success_count,
            channel_results=channel_results,
        )

        logger.debug("Dispatch complete: %d/%d succeeded", success_count, len(channel_results))
        return result
