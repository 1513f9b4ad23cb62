"""Poll orchestrator - drives the buy-event pipeline on a fixed interval.

Every tick launches one pipeline per tracked token:

    fetch pending signatures -> classify each -> enrich buys ->
    dispatch alert -> advance cursor

Pipelines of different tokens run concurrently and never wait on each
other. A token whose previous pipeline is still in flight is skipped
for the tick, so one token never has two pipelines racing on its cursor.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from solana_buy_tracker.alerter.dispatcher import AlertDispatcher
    from solana_buy_tracker.alerter.formatter import AlertFormatter
    from solana_buy_tracker.classifier.buys import TransactionClassifier
    from solana_buy_tracker.classifier.models import BuyEvent
    from solana_buy_tracker.enrich.metadata import MetadataResolver
    from solana_buy_tracker.enrich.models import MarketSnapshot
    from solana_buy_tracker.health import HealthMonitor
    from solana_buy_tracker.ledger.models import TransactionRecord
    from solana_buy_tracker.tracker.cursor import CursorTracker
    from solana_buy_tracker.tracker.registry import TokenRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0

# Failed deliveries of one signature before it is skipped
DEFAULT_MAX_DELIVERY_ATTEMPTS = 5


class TransactionSource(Protocol):
    """Ledger capability needed to load a transaction."""

    async def get_transaction(self, signature: str) -> TransactionRecord | None: ...


class MarketDataSource(Protocol):
    """Source of the market snapshot shown in the alert footer."""

    async def get_market_snapshot(self, address: str) -> MarketSnapshot: ...


class OrchestratorState(Enum):
    """Lifecycle state of the orchestrator."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class TokenPollResult:
    """Outcome of one token pipeline run."""

    token: str
    processed: int = 0
    buys: int = 0
    alerts: int = 0
    dropped: int = 0
    halted: bool = False


@dataclass
class OrchestratorStats:
    """Counters across all ticks."""

    ticks: int = 0
    skipped: int = 0
    failed: int = 0
    buys_detected: int = 0
    alerts_sent: int = 0
    alerts_dropped: int = 0


class PollOrchestrator:
    """Schedules per-token pipelines on a fixed interval.

    Example:
        ```python
        orchestrator = PollOrchestrator(
            registry, cursors, rpc, classifier, resolver, dexscreener,
            formatter, dispatcher, interval_seconds=3.0,
        )
        await orchestrator.start()
        ...
        await orchestrator.stop()
        ```
    """

    def __init__(
        self,
        registry: TokenRegistry,
        cursors: CursorTracker,
        ledger: TransactionSource,
        classifier: TransactionClassifier,
        resolver: MetadataResolver,
        market: MarketDataSource | None,
        formatter: AlertFormatter,
        dispatcher: AlertDispatcher,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_delivery_attempts: int = DEFAULT_MAX_DELIVERY_ATTEMPTS,
        health: HealthMonitor | None = None,
    ) -> None:
        self._registry = registry
        self._cursors = cursors
        self._ledger = ledger
        self._classifier = classifier
        self._resolver = resolver
        self._market = market
        self._formatter = formatter
        self._dispatcher = dispatcher
        self._interval = interval_seconds
        self._max_delivery_attempts = max(1, max_delivery_attempts)
        self._health = health

        self._state = OrchestratorState.STOPPED
        self._stats = OrchestratorStats()
        self._in_flight: dict[str, asyncio.Task[TokenPollResult | None]] = {}
        self._loop_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._delivery_failures: dict[str, int] = {}

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def stats(self) -> OrchestratorStats:
        return self._stats

    @property
    def in_flight(self) -> frozenset[str]:
        """Tokens whose pipeline is currently running."""
        return frozenset(t for t, task in self._in_flight.items() if not task.done())

    async def start(self) -> None:
        """Start ticking in the background."""
        if self._state != OrchestratorState.STOPPED:
            logger.warning("Cannot start orchestrator: already %s", self._state.value)
            return

        self._stop_event.clear()
        self._state = OrchestratorState.RUNNING
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info("Poll orchestrator started (interval %.1fs)", self._interval)

    async def stop(self) -> None:
        """Stop ticking and cancel in-flight pipelines."""
        if self._state == OrchestratorState.STOPPED:
            return

        self._state = OrchestratorState.STOPPING
        self._stop_event.set()

        if self._loop_task:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

        tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()

        self._state = OrchestratorState.STOPPED
        logger.info("Poll orchestrator stopped")

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                break
            except TimeoutError:
                pass

    def tick(self) -> list[asyncio.Task[TokenPollResult | None]]:
        """Launch a pipeline for every tracked token that is not running.

        Returns:
            The tasks started by this tick.
        """
        tokens = self._registry.list()
        self._stats.ticks += 1
        if self._health:
            self._health.record_tick(tracked=len(tokens))

        # Drop bookkeeping for tokens removed since the last tick
        for token in list(self._in_flight):
            if token not in tokens and self._in_flight[token].done():
                del self._in_flight[token]
                if self._health:
                    self._health.forget(token)

        started = []
        for token in tokens:
            running = self._in_flight.get(token)
            if running is not None and not running.done():
                self._stats.skipped += 1
                logger.debug("Pipeline for %s still running, skipping tick", token)
                continue

            task = asyncio.create_task(self._run_token(token), name=f"poll-{token}")
            self._in_flight[token] = task
            started.append(task)
        return started

    async def _run_token(self, token: str) -> TokenPollResult | None:
        started = time.monotonic()
        try:
            result = await self.process_token(token)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats.failed += 1
            logger.error("Pipeline for %s failed: %s", token, e)
            if self._health:
                self._health.record_error(token, str(e))
            return None

        self._stats.buys_detected += result.buys
        self._stats.alerts_sent += result.alerts
        self._stats.alerts_dropped += result.dropped
        if self._health:
            self._health.record_poll(
                token,
                duration=time.monotonic() - started,
                buys=result.buys,
                alerts=result.alerts,
            )
        return result

    async def process_token(self, token: str) -> TokenPollResult:
        """Run one pipeline pass for a token.

        Each signature advances the cursor once fully handled: after a
        delivered alert, or straight away for non-buys and buys below the
        thresholds. A failed delivery halts the pass without advancing so
        the signature is retried on the next tick, until it has failed
        ``max_delivery_attempts`` times in a row; it is then dropped and
        the cursor moves past it. Ledger errors propagate and likewise
        leave the cursor where it was.
        """
        result = TokenPollResult(token=token)
        since = self._cursors.get_watermark(token)
        signatures = await self._cursors.pending(token, since)
        if not signatures:
            return result

        logger.debug("%d new signatures for %s", len(signatures), token)
        for signature in signatures:
            record = await self._ledger.get_transaction(signature)
            if record is None:
                logger.debug("Transaction %s not available, skipping", signature)

            event = await self._classifier.classify(record, token)
            if event is not None:
                result.buys += 1
                if await self._send_alert(event):
                    self._delivery_failures.pop(signature, None)
                    result.alerts += 1
                else:
                    failures = self._delivery_failures.get(signature, 0) + 1
                    if failures < self._max_delivery_attempts:
                        self._delivery_failures[signature] = failures
                        result.halted = True
                        logger.warning(
                            "Alert for %s not delivered (attempt %d/%d), will retry next tick",
                            signature,
                            failures,
                            self._max_delivery_attempts,
                        )
                        break
                    self._delivery_failures.pop(signature, None)
                    result.dropped += 1
                    logger.error(
                        "Dropping alert for %s after %d failed deliveries", signature, failures
                    )

            await self._cursors.advance(token, signature)
            result.processed += 1

        return result

    async def _send_alert(self, event: BuyEvent) -> bool:
        identity = await self._resolver.resolve(event.token)
        market: MarketSnapshot | None = None
        if self._market is not None:
            try:
                market = await self._market.get_market_snapshot(event.token)
            except Exception as e:
                logger.warning("Market lookup failed for %s: %s", event.token, e)

        alert = self._formatter.format(event, identity, market)
        dispatch = await self._dispatcher.dispatch(alert)
        if dispatch.all_succeeded:
            logger.info(
                "Buy alert sent: %s %s SOL (%s)", identity.symbol, event.sol_spent, event.signature
            )
        return dispatch.all_succeeded
