"""
CLI entrypoint that wires the alarm bridge and runs it until interrupted.

Configuration is loaded first; a missing bot token or device URL is fatal and
ends the process with exit status 2 before anything touches the network.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import signal
from collections.abc import Sequence
from pathlib import Path

from .core.config import ConfigError, ConfigService, ConfigSnapshot
from .core.contracts import BaseModule
from .core.runtime import Runtime
from .core.state import StateStore
from .modules import (
    BotOrchestrator,
    DeviceClient,
    LocalEventListener,
    TelegramGateway,
    UpdatePoller,
)

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing) == log_file.resolve():
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def build_modules(snapshot: ConfigSnapshot) -> list[BaseModule]:
    """
    Instantiate the modules in start order.

    The device client and gateway come first so the orchestrator can use them
    as soon as the poller and listener begin accepting events.
    """

    store = StateStore()
    device = DeviceClient(snapshot.device.base_url, timeout=snapshot.device.timeout)
    gateway = TelegramGateway(snapshot.telegram.token)
    orchestrator = BotOrchestrator(store=store, device=device, gateway=gateway)
    poller = UpdatePoller(gateway=gateway, orchestrator=orchestrator)
    listener = LocalEventListener(store=store, orchestrator=orchestrator)
    return [device, gateway, orchestrator, poller, listener]


async def run_bridge(config_service: ConfigService) -> None:
    """Register modules, start them, and run until a shutdown signal arrives."""

    runtime = Runtime()
    for module in build_modules(config_service.snapshot):
        await runtime.add_module(module, config_service.module_config_for(module))

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    await runtime.start()
    LOGGER.info("Alarm bridge running with %d modules. Press Ctrl+C to stop.", len(runtime.modules))

    try:
        await stop_event.wait()
    finally:
        await runtime.stop()


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str) -> None:
        if not stop_event.is_set():
            LOGGER.info("Received %s, beginning graceful shutdown.", sig_name)
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
        except NotImplementedError:  # Windows Proactor loop
            signal.signal(  # type: ignore[arg-type]
                sig,
                lambda signum, _frame, sig_name=sig.name: loop.call_soon_threadsafe(
                    _request_shutdown, sig_name or str(signum)
                ),
            )


def configure_logging(level: str) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
    )


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bridge a Telegram bot and a home alarm device.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains config.yaml/secrets.yaml (default: ./config).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: logging.level from config, else INFO).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or "INFO")
    try:
        config_service = ConfigService(config_dir=args.config_dir)
    except ConfigError as exc:
        LOGGER.error("Configuration failed: %s", exc)
        return 2

    log_settings = config_service.snapshot.logging
    if args.log_level is None:
        logging.getLogger().setLevel(getattr(logging, log_settings.level.upper(), logging.INFO))
    if log_settings.file is not None:
        _ensure_rotating_file_handler(
            log_settings.file,
            max_mb=log_settings.max_mb,
            backup_count=log_settings.backup_count,
        )

    try:
        asyncio.run(run_bridge(config_service))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Alarm bridge crashed.")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["build_modules", "main", "run_bridge"]
