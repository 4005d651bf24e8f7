"""
Lifecycle coordinator for the alarm bridge modules.

The runtime configures modules, starts them in registration order, stops them
in reverse order and periodically logs aggregated health so operators can spot
a module that silently degraded.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .contracts import BaseModule, HealthStatus, ModuleConfig

logger = logging.getLogger(__name__)


class Runtime:
    """Manage module lifecycle."""

    def __init__(self, *, health_interval: float = 60.0, log_health: bool = True) -> None:
        self._modules: list[BaseModule] = []
        self._configs: dict[BaseModule, ModuleConfig] = {}
        self._started: list[BaseModule] = []
        self._running = False
        self._health_interval = health_interval
        self._log_health = log_health
        self._health_task: asyncio.Task[None] | None = None
        self._last_overall: str | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def modules(self) -> list[BaseModule]:
        return list(self._modules)

    async def add_module(self, module: BaseModule, config: ModuleConfig | None = None) -> None:
        """
        Register a module with an optional configuration.

        Configuration defaults to the module's baseline if one is not
        provided.
        """
        if config is None:
            config = ModuleConfig()
        await module.configure(config)
        self._modules.append(module)
        self._configs[module] = config
        logger.info("Registered module %s", module.name)

    async def start(self) -> None:
        """Start all registered modules; roll back the started ones on failure."""
        if self._running:
            logger.warning("Runtime already running.")
            return
        for module in self._modules:
            config = self._configs.get(module)
            if config is not None and not config.enabled:
                logger.info("Module %s disabled by configuration; skipping", module.name)
                continue
            logger.info("Starting module %s", module.name)
            try:
                await module.start()
            except Exception:
                logger.exception("Module %s failed to start; stopping started modules.", module.name)
                await self._stop_started()
                raise
            self._started.append(module)
        self._running = True
        if self._log_health:
            self._health_task = asyncio.create_task(self._health_loop(), name="alarmbot-health")
        logger.info("Runtime started %d modules.", len(self._started))

    async def stop(self) -> None:
        """Stop all started modules in reverse order."""
        if not self._running:
            logger.warning("Runtime stop requested while not running.")
            return
        if self._health_task:
            self._health_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._health_task
            self._health_task = None
        await self._stop_started()
        self._running = False
        logger.info("Runtime stopped.")

    async def health(self) -> dict[str, HealthStatus]:
        """Aggregate health information from all modules."""
        reports: dict[str, HealthStatus] = {}
        for module in self._modules:
            reports[module.name] = await module.health()
        return reports

    async def _stop_started(self) -> None:
        while self._started:
            module = self._started.pop()
            try:
                await module.stop()
            except Exception:  # pragma: no cover - logged for troubleshooting
                logger.exception("Module %s failed to stop cleanly.", module.name)

    async def _health_loop(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self._health_interval)
                reports = await self.health()
                overall = self.determine_overall_status(reports)
                if overall != self._last_overall:
                    logger.info("Overall health is now %s", overall)
                    self._last_overall = overall
                for name, report in reports.items():
                    if report.status != "healthy":
                        logger.warning("Module %s reports %s: %s", name, report.status, report.details)
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            return

    @staticmethod
    def determine_overall_status(reports: dict[str, HealthStatus]) -> str:
        statuses = {report.status for report in reports.values()}
        if "error" in statuses:
            return "error"
        if "degraded" in statuses:
            return "degraded"
        return "healthy"


__all__ = ["Runtime"]
