"""Messaging platform adapters."""

from .telegram_gateway import MessagingError, MessagingGateway, TelegramGateway

__all__ = ["MessagingError", "MessagingGateway", "TelegramGateway"]
