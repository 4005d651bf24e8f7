"""
Command dispatcher and broadcaster sitting between chats and the alarm device.

Inbound chat events are answered in the originating chat only. Device-side
events reach every registered chat through `broadcast` (best effort) or
`broadcast_video` (stops at the first failed send).
"""

from __future__ import annotations

import logging
from typing import BinaryIO

from ...core.contracts import AlarmState, BaseModule, HealthStatus, InboundEvent
from ...core.state import StateStore
from ..device.client import DeviceClient, DeviceError
from ..messaging.telegram_gateway import MessagingError, MessagingGateway
from .registry import ChatRegistry

logger = logging.getLogger(__name__)

ARMED_REPLY = "🔒 System Armed"
DISARMED_REPLY = "🔓 System Disarmed"
STATUS_ARMED_REPLY = "📟 State: 🚨 Armed"
STATUS_DISARMED_REPLY = "📟 State: 💤 Disarmed"
PIN_CHANGED_REPLY = "🔑 PIN changed"
CHANGE_PIN_USAGE = "Usage: /change_pin <pin>"
UNKNOWN_COMMAND_REPLY = "🤖 unknown command"
FAILURE_MARKER = "❌"


def failure_reply(exc: Exception) -> str:
    return f"{FAILURE_MARKER} {exc}"


class BotOrchestrator(BaseModule):
    """Dispatch chat commands to the device and fan out device events."""

    name = "modules.bot.orchestrator"

    def __init__(
        self,
        *,
        store: StateStore,
        device: DeviceClient,
        gateway: MessagingGateway,
        registry: ChatRegistry | None = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._device = device
        self._gateway = gateway
        self._registry = registry or ChatRegistry()

    @property
    def registry(self) -> ChatRegistry:
        return self._registry

    async def start(self) -> None:
        return None

    async def health(self) -> HealthStatus:
        return HealthStatus(
            status="healthy",
            details={"registered_chats": len(self._registry), "state": self._store.get().value},
        )

    async def handle(self, event: InboundEvent) -> None:
        """Answer one inbound chat event."""
        if event.chat_id is None:
            return
        chat_id = event.chat_id
        if self._registry.add(chat_id):
            logger.info("Registered chat %s", chat_id)

        text = event.text.strip()
        parts = text.split()
        if text == "/arm":
            reply = await self._set_remote_state(AlarmState.ARMED)
        elif text == "/disarm":
            reply = await self._set_remote_state(AlarmState.DISARMED)
        elif text == "/status":
            reply = await self._status_reply()
        elif parts and parts[0] == "/change_pin":
            reply = await self._change_pin(parts)
        else:
            reply = UNKNOWN_COMMAND_REPLY
        await self._reply(chat_id, reply)

    async def broadcast(self, text: str) -> int:
        """Send text to every registered chat; failed chats are skipped."""
        delivered = 0
        for chat_id in self._registry.snapshot():
            try:
                await self._gateway.send_message(chat_id, text)
            except MessagingError as exc:
                logger.warning("Broadcast to chat %s failed: %s", chat_id, exc)
                continue
            delivered += 1
        logger.info("Broadcast delivered to %d chats", delivered)
        return delivered

    async def broadcast_video(self, stream: BinaryIO, caption: str) -> int:
        """Send the same clip to every registered chat; the first failure aborts."""
        data = stream.read()
        delivered = 0
        for chat_id in self._registry.snapshot():
            await self._gateway.send_video(chat_id, data, caption)
            delivered += 1
        logger.info("Video (%d bytes) delivered to %d chats", len(data), delivered)
        return delivered

    async def _set_remote_state(self, target: AlarmState) -> str:
        try:
            if target is AlarmState.ARMED:
                await self._device.arm()
            else:
                await self._device.disarm()
        except DeviceError as exc:
            return failure_reply(exc)
        self._store.set(target)
        return ARMED_REPLY if target is AlarmState.ARMED else DISARMED_REPLY

    async def _status_reply(self) -> str:
        try:
            status = await self._device.status()
        except DeviceError as exc:
            return failure_reply(exc)
        return STATUS_ARMED_REPLY if status.is_armed else STATUS_DISARMED_REPLY

    async def _change_pin(self, parts: list[str]) -> str:
        if len(parts) != 2:
            return CHANGE_PIN_USAGE
        try:
            await self._device.change_pin(parts[1])
        except DeviceError as exc:
            return failure_reply(exc)
        return PIN_CHANGED_REPLY

    async def _reply(self, chat_id: int, text: str) -> None:
        try:
            await self._gateway.send_message(chat_id, text)
        except MessagingError as exc:
            logger.error("Reply to chat %s failed: %s", chat_id, exc)


__all__ = [
    "BotOrchestrator",
    "CHANGE_PIN_USAGE",
    "FAILURE_MARKER",
    "UNKNOWN_COMMAND_REPLY",
]
