"""
Alarm bridge modules grouped by responsibility.
"""

from .bot import BotOrchestrator, ChatRegistry, UpdatePoller
from .device import DeviceClient
from .listener import LocalEventListener
from .messaging import TelegramGateway

__all__ = [
    "BotOrchestrator",
    "ChatRegistry",
    "DeviceClient",
    "LocalEventListener",
    "TelegramGateway",
    "UpdatePoller",
]
