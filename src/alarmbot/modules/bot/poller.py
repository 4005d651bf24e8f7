"""
Long-poll consumer feeding inbound chat events to the orchestrator.

A single task owns the cursor. Events from one batch are handled in order and
to completion before the next fetch, and the cursor only ever moves forward,
so a restart at worst replays events that were already seen.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from ...core.contracts import BaseModule, HealthStatus, ModuleConfig
from ..messaging.telegram_gateway import MessagingError, MessagingGateway
from .orchestrator import BotOrchestrator

logger = logging.getLogger(__name__)


class UpdatePoller(BaseModule):
    """Fetch batches of chat events and hand them to the orchestrator."""

    name = "modules.bot.poller"

    def __init__(
        self,
        *,
        gateway: MessagingGateway,
        orchestrator: BotOrchestrator,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        super().__init__()
        self._gateway = gateway
        self._orchestrator = orchestrator
        self._sleep = sleep or asyncio.sleep
        self._poll_timeout = 60
        self._retry_delay = 5.0
        self._cursor = 0
        self._task: asyncio.Task[None] | None = None
        self._handled_total = 0
        self._fetch_failures = 0

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._poll_timeout = int(options.get("poll_timeout", self._poll_timeout))
        self._retry_delay = float(options.get("retry_delay_seconds", self._retry_delay))

    @property
    def cursor(self) -> int:
        return self._cursor

    async def start(self) -> None:
        if self._task is not None:
            logger.debug("UpdatePoller already running.")
            return
        self._task = asyncio.create_task(self._run(), name="alarmbot-update-poller")
        logger.info("UpdatePoller started (timeout=%ss).", self._poll_timeout)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("UpdatePoller stopped at cursor %d.", self._cursor)

    async def health(self) -> HealthStatus:
        running = self._task is not None and not self._task.done()
        return HealthStatus(
            status="healthy" if running else "degraded",
            details={
                "cursor": self._cursor,
                "handled_total": self._handled_total,
                "fetch_failures": self._fetch_failures,
            },
        )

    async def poll_once(self) -> int:
        """Run one fetch/handle cycle; returns the number of events handled."""
        try:
            events = await self._gateway.fetch_updates(self._cursor, self._poll_timeout)
        except MessagingError as exc:
            self._fetch_failures += 1
            logger.warning("Fetching updates failed: %s; retrying in %.0fs", exc, self._retry_delay)
            await self._sleep(self._retry_delay)
            return 0
        handled = 0
        for event in events:
            try:
                await self._orchestrator.handle(event)
            except Exception:
                logger.exception("Handling update %d failed", event.update_id)
            self._cursor = max(self._cursor, event.update_id + 1)
            handled += 1
        self._handled_total += handled
        return handled

    async def _run(self) -> None:
        while True:
            await self.poll_once()


__all__ = ["UpdatePoller"]
