"""Chat command handling: registry, orchestrator and update poller."""

from .orchestrator import BotOrchestrator
from .poller import UpdatePoller
from .registry import ChatRegistry

__all__ = ["BotOrchestrator", "ChatRegistry", "UpdatePoller"]
