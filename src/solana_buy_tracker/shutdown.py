"""Signal-driven shutdown for the buy tracker.

The first SIGINT or SIGTERM sets an event that the main coroutine awaits;
the pipeline is then stopped through its registered cleanup callbacks.
A second signal exits immediately.

Usage:
    ```python
    async with GracefulShutdown() as shutdown:
        pipeline = Pipeline(settings)
        shutdown.register_cleanup(pipeline.stop)
        await pipeline.start()
        await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

# Upper bound for all cleanup callbacks together
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)

CleanupCallback = Callable[[], Awaitable[Any] | Any]


class GracefulShutdown:
    """Coordinates a clean stop of the polling pipeline.

    Cleanup callbacks run in registration order when the context exits,
    each failure is logged, and the whole sequence is bounded by
    ``timeout`` seconds.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        self._timeout = timeout
        self._event: asyncio.Event | None = None
        self._shutdown_requested = False
        self._force_exit_requested = False
        self._cleanup_callbacks: list[CleanupCallback] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._fallback_handlers: dict[signal.Signals, Any] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        return self._shutdown_requested

    @property
    def is_force_exit_requested(self) -> bool:
        return self._force_exit_requested

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._shutdown_requested:
                self._event.set()
        return self._event

    def register_cleanup(self, callback: CleanupCallback) -> None:
        """Register a sync or async callable to run on shutdown."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Trigger shutdown from application code."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        logger.info("Shutdown requested")
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._get_event().wait()

    def install_signal_handlers(self) -> None:
        """Trap SIGINT and SIGTERM.

        Uses the event loop's signal support and falls back to
        ``signal.signal`` where the loop does not provide it.
        """
        self._loop = asyncio.get_running_loop()
        self._get_event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except NotImplementedError:
                self._fallback_handlers[sig] = signal.signal(sig, self._handle_signal_sync)
            except (ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

        logger.debug("Signal handlers installed")

    def remove_signal_handlers(self) -> None:
        """Restore the signal handling that was active before install."""
        if self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(ValueError, OSError, NotImplementedError):
                    self._loop.remove_signal_handler(sig)

        for sig, original in self._fallback_handlers.items():
            with suppress(ValueError, OSError):
                signal.signal(sig, original)
        self._fallback_handlers.clear()

        logger.debug("Signal handlers removed")

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_requested:
            self._force_exit_requested = True
            logger.warning("Received %s again, forcing exit", sig.name)
            sys.exit(128 + sig.value)

        logger.info("Received %s, stopping buy tracker...", sig.name)
        self.request_shutdown()

    def _handle_signal_sync(self, sig: int, _frame: FrameType | None) -> None:
        self._handle_signal(signal.Signals(sig))

    async def run_cleanup_callbacks(self) -> None:
        """Run registered callbacks, bounded by the shutdown timeout."""
        try:
            await asyncio.wait_for(self._run_callbacks(), timeout=self._timeout)
        except TimeoutError:
            logger.error("Cleanup did not finish within %.1fs", self._timeout)

    async def _run_callbacks(self) -> None:
        for callback in self._cleanup_callbacks:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
