"""
Telegram gateway used for replies, broadcasts and inbound long polling.

python-telegram-bot provides the wire encoding; this module only adapts its
`Bot` to the small surface the orchestrator and poller need and funnels every
platform failure into `MessagingError`.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from telegram import Bot, InputFile, Update
from telegram.error import TelegramError
from telegram.request import HTTPXRequest

from ...core.contracts import BaseModule, HealthStatus, InboundEvent, ModuleConfig

logger = logging.getLogger(__name__)

VIDEO_FILENAME = "alarm.mp4"


class MessagingError(RuntimeError):
    """Raised when a call to the messaging platform fails."""


class MessagingGateway(Protocol):
    """Protocol implemented by concrete messaging backends."""

    async def send_message(self, chat_id: int, text: str) -> None: ...

    async def send_video(self, chat_id: int, data: bytes, caption: str) -> None: ...

    async def fetch_updates(self, offset: int, timeout: int) -> list[InboundEvent]: ...


def event_from_update(update: Update) -> InboundEvent:
    """Decode a Telegram update; updates without a message are not chat-addressable."""
    message = update.message
    if message is None:
        return InboundEvent(update_id=update.update_id)
    return InboundEvent(
        update_id=update.update_id,
        chat_id=message.chat.id,
        text=(message.text or "").strip(),
    )


class TelegramGateway(BaseModule):
    """Adapter that uses python-telegram-bot to talk to Telegram."""

    name = "modules.messaging.telegram_gateway"

    def __init__(self, token: str | None = None, *, bot: Any | None = None) -> None:
        super().__init__()
        self._token = token
        self._bot = bot
        self._owns_bot = bot is None
        self._read_timeout = 30.0
        self._write_timeout = 60.0
        self._poll_timeout = 60
        self._sent_total = 0
        self._failed_total = 0

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._token = options.get("token") or self._token
        self._read_timeout = float(options.get("read_timeout", self._read_timeout))
        self._write_timeout = float(options.get("write_timeout", self._write_timeout))
        self._poll_timeout = int(options.get("poll_timeout", self._poll_timeout))

    async def start(self) -> None:
        if self._bot is None:
            if not self._token:
                raise MessagingError("Telegram token is required.")
            request = HTTPXRequest(read_timeout=self._read_timeout, write_timeout=self._write_timeout)
            # Long polling holds the connection open for poll_timeout seconds.
            updates_request = HTTPXRequest(read_timeout=self._poll_timeout + 10.0)
            self._bot = Bot(token=self._token, request=request, get_updates_request=updates_request)
        if self._owns_bot:
            try:
                await self._bot.initialize()
            except TelegramError as exc:
                logger.warning(
                    "Telegram bot initialization failed, continuing without bot info: %s", exc
                )
        logger.info("TelegramGateway started.")

    async def stop(self) -> None:
        if self._bot is not None and self._owns_bot:
            try:
                await self._bot.shutdown()
            except TelegramError as exc:  # pragma: no cover - network errors
                logger.warning("Telegram bot shutdown failed: %s", exc)
            self._bot = None
        logger.info("TelegramGateway stopped.")

    async def health(self) -> HealthStatus:
        status = "healthy" if self._bot is not None else "degraded"
        return HealthStatus(
            status=status,
            details={"sent_total": self._sent_total, "failed_total": self._failed_total},
        )

    async def send_message(self, chat_id: int, text: str) -> None:
        bot = self._ensure_bot()
        try:
            await bot.send_message(chat_id=chat_id, text=text)
        except TelegramError as exc:
            self._failed_total += 1
            raise MessagingError(f"sendMessage to {chat_id} failed: {exc}") from exc
        self._sent_total += 1

    async def send_video(self, chat_id: int, data: bytes, caption: str) -> None:
        bot = self._ensure_bot()
        video = InputFile(data, filename=VIDEO_FILENAME)
        try:
            await bot.send_video(chat_id=chat_id, video=video, caption=caption)
        except TelegramError as exc:
            self._failed_total += 1
            raise MessagingError(f"sendVideo to {chat_id} failed: {exc}") from exc
        self._sent_total += 1

    async def fetch_updates(self, offset: int, timeout: int) -> list[InboundEvent]:
        bot = self._ensure_bot()
        try:
            updates = await bot.get_updates(
                offset=offset, timeout=timeout, allowed_updates=["message"]
            )
        except TelegramError as exc:
            raise MessagingError(f"getUpdates failed: {exc}") from exc
        return [event_from_update(update) for update in updates]

    def _ensure_bot(self) -> Any:
        if self._bot is None:
            raise MessagingError("TelegramGateway has not been started yet.")
        return self._bot


__all__ = [
    "MessagingError",
    "MessagingGateway",
    "TelegramGateway",
    "VIDEO_FILENAME",
    "event_from_update",
]
