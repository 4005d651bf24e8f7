"""
alarmbot - Telegram bridge for a home alarm device

Chats arm, disarm and query the alarm through bot commands; the alarm pushes
triggers, PIN disarms and video clips back to every chat that has talked to
the bot.
"""

__version__ = "0.1.0"

from alarmbot.core import AlarmState, ConfigService, Runtime, StateStore
from alarmbot.modules import (
    BotOrchestrator,
    ChatRegistry,
    DeviceClient,
    LocalEventListener,
    TelegramGateway,
    UpdatePoller,
)

__all__ = [
    "AlarmState",
    "BotOrchestrator",
    "ChatRegistry",
    "ConfigService",
    "DeviceClient",
    "LocalEventListener",
    "Runtime",
    "StateStore",
    "TelegramGateway",
    "UpdatePoller",
]
