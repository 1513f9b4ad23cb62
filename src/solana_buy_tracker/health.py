"""Poll health monitor with metrics and HTTP endpoints.

This module tracks the polling loop and every token's pipeline, and
exposes the state over HTTP for uptime checks and Prometheus scraping.
"""

import copy
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from aiohttp import web
from prometheus_client import Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_STALE_THRESHOLD_SECONDS = 60.0  # No completed tick for 60s = unhealthy
DEFAULT_HTTP_PORT = 10000
ROOT_MESSAGE = "Solana Buy Bot is running."


class HealthStatus(Enum):
    """Overall health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class TokenStatus(Enum):
    """Status of an individual token pipeline."""

    PENDING = "pending"
    OK = "ok"
    FAILING = "failing"


@dataclass
class TokenHealth:
    """Health of one token's pipeline."""

    token: str
    status: TokenStatus = TokenStatus.PENDING
    polls: int = 0
    buys_detected: int = 0
    alerts_sent: int = 0
    last_poll_time: float | None = None
    last_error: str | None = None


@dataclass
class HealthReport:
    """Health report for the polling loop and all tokens."""

    status: HealthStatus
    tokens: dict[str, TokenHealth] = field(default_factory=dict)
    ticks: int = 0
    last_tick_time: float | None = None
    uptime_seconds: float = 0.0
    timestamp: float = field(default_factory=time.time)


# Prometheus metrics
POLLS_TOTAL = Counter(
    "buy_tracker_polls_total",
    "Token pipeline runs by outcome",
    ["outcome"],
)

BUYS_TOTAL = Counter(
    "buy_tracker_buys_detected_total",
    "Buy transactions detected",
)

ALERTS_TOTAL = Counter(
    "buy_tracker_alerts_sent_total",
    "Buy alerts delivered",
)

POLL_LATENCY = Histogram(
    "buy_tracker_poll_duration_seconds",
    "Duration of one token pipeline run",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

TRACKED_TOKENS = Gauge(
    "buy_tracker_tracked_tokens",
    "Number of tokens being tracked",
)

LAST_TICK_TIMESTAMP = Gauge(
    "buy_tracker_last_tick_timestamp",
    "Unix timestamp of the last polling tick",
)

HEALTH_STATUS = Gauge(
    "buy_tracker_health_status",
    "Overall health status (1=healthy, 0.5=degraded, 0=unhealthy)",
)


class HealthMonitor:
    """Track pipeline health and serve it over HTTP.

    Example:
        ```python
        monitor = HealthMonitor(stale_threshold_seconds=60)
        monitor.start()

        monitor.record_tick(tracked=3)
        monitor.record_poll(mint, duration=0.4, buys=1, alerts=1)

        await monitor.start_http_server(port=10000)
        ```
    """

    def __init__(self, *, stale_threshold_seconds: float = DEFAULT_STALE_THRESHOLD_SECONDS) -> None:
        self._stale_threshold = stale_threshold_seconds
        self._tokens: dict[str, TokenHealth] = {}
        self._start_time: float | None = None
        self._ticks = 0
        self._last_tick_time: float | None = None
        self._runner: web.AppRunner | None = None

    def start(self) -> None:
        """Mark the monitored process as started."""
        self._start_time = time.time()

    def record_tick(self, tracked: int) -> None:
        """Record the start of a polling tick."""
        now = time.time()
        self._ticks += 1
        self._last_tick_time = now
        LAST_TICK_TIMESTAMP.set(now)
        TRACKED_TOKENS.set(tracked)

    def _token(self, token: str) -> TokenHealth:
        if token not in self._tokens:
            self._tokens[token] = TokenHealth(token=token)
        return self._tokens[token]

    def record_poll(self, token: str, *, duration: float, buys: int = 0, alerts: int = 0) -> None:
        """Record a completed pipeline run for a token."""
        health = self._token(token)
        health.status = TokenStatus.OK
        health.polls += 1
        health.buys_detected += buys
        health.alerts_sent += alerts
        health.last_poll_time = time.time()
        health.last_error = None

        POLLS_TOTAL.labels(outcome="ok").inc()
        POLL_LATENCY.observe(duration)
        if buys:
            BUYS_TOTAL.inc(buys)
        if alerts:
            ALERTS_TOTAL.inc(alerts)

    def record_error(self, token: str, error: str) -> None:
        """Record a failed pipeline run for a token."""
        health = self._token(token)
        health.status = TokenStatus.FAILING
        health.polls += 1
        health.last_poll_time = time.time()
        health.last_error = error
        POLLS_TOTAL.labels(outcome="error").inc()

    def forget(self, token: str) -> None:
        """Drop a token that is no longer tracked."""
        self._tokens.pop(token, None)

    def _determine_overall_status(self) -> HealthStatus:
        if self._start_time is not None:
            reference = self._last_tick_time or self._start_time
            if time.time() - reference > self._stale_threshold:
                return HealthStatus.UNHEALTHY

        if any(t.status == TokenStatus.FAILING for t in self._tokens.values()):
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    def get_health_report(self) -> HealthReport:
        """Generate a health report."""
        status = self._determine_overall_status()
        HEALTH_STATUS.set(
            1.0 if status == HealthStatus.HEALTHY
            else 0.5 if status == HealthStatus.DEGRADED
            else 0.0
        )

        uptime = time.time() - self._start_time if self._start_time else 0.0
        return HealthReport(
            status=status,
            tokens={name: copy.copy(t) for name, t in self._tokens.items()},
            ticks=self._ticks,
            last_tick_time=self._last_tick_time,
            uptime_seconds=uptime,
        )

    # HTTP Server methods

    async def _handle_root(self, _request: web.Request) -> web.Response:
        return web.Response(text=ROOT_MESSAGE)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        report = self.get_health_report()
        status_code = 503 if report.status == HealthStatus.UNHEALTHY else 200

        body: dict[str, Any] = {
            "status": report.status.value,
            "uptime_seconds": round(report.uptime_seconds, 1),
            "ticks": report.ticks,
            "last_tick_time": report.last_tick_time,
            "tokens": {
                name: {
                    "status": t.status.value,
                    "polls": t.polls,
                    "buys_detected": t.buys_detected,
                    "alerts_sent": t.alerts_sent,
                    "last_poll_time": t.last_poll_time,
                    "last_error": t.last_error,
                }
                for name, t in report.tokens.items()
            },
        }
        return web.json_response(body, status=status_code)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        self.get_health_report()
        return web.Response(body=generate_latest(), content_type="text/plain", charset="utf-8")

    async def _handle_ready(self, _request: web.Request) -> web.Response:
        """Handle /ready endpoint."""
        if self.get_health_report().status == HealthStatus.UNHEALTHY:
            return web.json_response({"ready": False, "reason": "unhealthy"}, status=503)
        return web.json_response({"ready": True})

    async def _handle_live(self, _request: web.Request) -> web.Response:
        """Handle /live endpoint."""
        return web.json_response({"live": True})

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/ready", self._handle_ready)
        app.router.add_get("/live", self._handle_live)
        return app

    async def start_http_server(self, port: int = DEFAULT_HTTP_PORT) -> None:
        """Start the HTTP server for health and metrics endpoints."""
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._runner = web.AppRunner(self.create_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", port)
        await site.start()
        logger.info("Health HTTP server started on port %d", port)

    async def stop_http_server(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Health HTTP server stopped")
