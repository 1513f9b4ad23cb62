"""Pipeline wiring for the Solana buy tracker.

Builds every component from settings, owns their lifecycle and holds
the shared state (token registry and cursors) that the orchestrator and
the Telegram command listener both act on.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from redis.asyncio import Redis

from solana_buy_tracker.alerter import (
    AlertDispatcher,
    AlertFormatter,
    CommandHandler,
    TelegramChannel,
    TelegramCommandListener,
)
from solana_buy_tracker.classifier import TransactionClassifier
from solana_buy_tracker.enrich import (
    DexScreenerClient,
    MetadataResolver,
    PriceOracle,
    create_http_client,
)
from solana_buy_tracker.health import HealthMonitor
from solana_buy_tracker.ledger import SolanaRpcClient
from solana_buy_tracker.orchestrator import PollOrchestrator
from solana_buy_tracker.tracker import (
    CursorStore,
    CursorTracker,
    FileCursorStore,
    RedisCursorStore,
    TokenRegistry,
)

if TYPE_CHECKING:
    from solana_buy_tracker.config import Settings

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Lifecycle state of the pipeline."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class Pipeline:
    """Owns all components of the buy tracker.

    Example:
        ```python
        pipeline = Pipeline(get_settings(), dry_run=True)
        await pipeline.start()
        ...
        await pipeline.stop()
        ```
    """

    def __init__(self, settings: Settings, *, dry_run: bool = False) -> None:
        self._settings = settings
        self._dry_run = dry_run
        self._state = PipelineState.STOPPED

        self._http = create_http_client(timeout=settings.http_timeout_seconds)
        self._redis: Redis | None = None

        self.rpc = SolanaRpcClient(
            settings.solana.rpc_url,
            fallback_rpc_url=settings.solana.fallback_rpc_url,
            http_client=self._http,
        )
        self.dexscreener = DexScreenerClient(self._http)
        self.price_oracle = PriceOracle(self._http)
        self.resolver = MetadataResolver.default(self._http, self.rpc, self.dexscreener)
        self.classifier = TransactionClassifier(
            self.price_oracle,
            min_sol_spent=settings.polling.min_sol_spent,
            min_value_usd=settings.polling.min_value_usd,
        )

        self.registry = TokenRegistry(settings.storage.tracked_tokens_file)
        self.cursors = CursorTracker(
            self.rpc,
            self._create_cursor_store(),
            page_size=settings.polling.signature_page_size,
            max_pages=settings.polling.max_signature_pages,
        )

        self.telegram = TelegramChannel(
            settings.telegram.bot_token.get_secret_value(),
            settings.telegram.chat_id,
            timeout=settings.http_timeout_seconds,
        )
        self.dispatcher = AlertDispatcher([self.telegram], dry_run=dry_run)
        self.commands = TelegramCommandListener(
            self.telegram, CommandHandler(self.registry, self.cursors)
        )

        self.health = HealthMonitor(
            stale_threshold_seconds=max(60.0, settings.polling.interval_seconds * 10)
        )
        self.orchestrator = PollOrchestrator(
            self.registry,
            self.cursors,
            self.rpc,
            self.classifier,
            self.resolver,
            self.dexscreener,
            AlertFormatter(),
            self.dispatcher,
            interval_seconds=settings.polling.interval_seconds,
            max_delivery_attempts=settings.polling.max_delivery_attempts,
            health=self.health,
        )

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def _create_cursor_store(self) -> CursorStore:
        if self._settings.storage.redis_url:
            self._redis = Redis.from_url(self._settings.storage.redis_url)
            logger.info("Persisting cursors in Redis")
            return RedisCursorStore(self._redis)
        return FileCursorStore(self._settings.storage.cursor_store_path)

    async def start(self) -> None:
        """Load persisted state and start all background services."""
        if self._state != PipelineState.STOPPED:
            logger.warning("Cannot start pipeline: already %s", self._state.value)
            return

        self._state = PipelineState.STARTING
        tokens = self.registry.load()
        await self.cursors.load()
        if not await self.rpc.health_check():
            logger.warning("Solana RPC is not reporting healthy, polls will keep retrying")
        if not tokens:
            logger.info("No tracked tokens yet, add one with /add <mint>")

        self.health.start()
        await self.health.start_http_server(self._settings.health_port)
        await self.commands.start()
        await self.orchestrator.start()

        self._state = PipelineState.RUNNING
        logger.info("Pipeline started with %d tracked tokens", tokens)

    async def stop(self) -> None:
        """Stop background services and release network resources."""
        if self._state in (PipelineState.STOPPED, PipelineState.STOPPING):
            return

        self._state = PipelineState.STOPPING
        await self.orchestrator.stop()
        await self.commands.stop()
        await self.health.stop_http_server()

        await self._http.aclose()
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")
